"""
Expense Claim API Tests
Submission, review chain, resubmission, reads and notifications
"""

import os
from decimal import Decimal
from io import BytesIO
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from claimflow.config.settings import settings
from claimflow.models.claim import Claim
from claimflow.models.history import ClaimHistory
from claimflow.services.history_service import history_service
from claimflow.utils.exceptions import NotificationError


def amount(value) -> Decimal:
    return Decimal(str(value))


def recipients(sent_emails):
    return [(call.args[0], call.args[1]) for call in sent_emails.call_args_list]


def stored_receipts(employee):
    employee_dir = os.path.join(settings.UPLOAD_DIRECTORY, str(employee.id))
    return set(os.listdir(employee_dir)) if os.path.isdir(employee_dir) else set()


class TestSubmission:
    """Submitting claims"""

    def test_travel_only_claim(self, api, db, org):
        response = api.submit(org.user)

        assert response.status_code == 201
        expense = response.json()["expense"]
        assert amount(expense["claim_amount"]) == Decimal("500")
        assert expense["status"] == "pending"
        assert expense["emp_code"] == "EMP100"
        assert expense["site_location"] == "Bengaluru"

    def test_zero_total_is_rejected_and_nothing_stored(self, api, db, org):
        response = api.submit(org.user, api.payload(fare="-40"))

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "claim amount must be positive"}
        assert db.query(Claim).count() == 0

    def test_amount_too_large_to_store(self, api, db, org):
        response = api.submit(org.user, api.payload(fare="1e30"))

        assert response.status_code == 400
        assert response.json()["message"] == "fare_amount exceeds the maximum of 9999999999.99"
        assert db.query(Claim).count() == 0

    def test_grand_total_too_large_to_store(self, api, db, org):
        payload = api.payload(fare="9999999999.99", food_expenses=[{"bill_amount": "1"}])

        response = api.submit(org.user, payload)

        assert response.status_code == 400
        assert response.json()["message"] == "claim amount exceeds the maximum of 9999999999.99"
        assert db.query(Claim).count() == 0

    def test_edit_with_oversized_amount_changes_nothing(self, api, db, org):
        claim_id = api.submit(org.user).json()["expense"]["id"]

        response = api.edit(org.user, claim_id, api.payload(stay_allowance=[{"amount": "800", "no_of_days": "99999999999"}]))

        assert response.status_code == 400
        assert response.json()["message"] == "no_of_days exceeds the maximum of 2147483647"
        db.expire_all()
        assert db.query(Claim).filter(Claim.id == claim_id).one().claim_amount == Decimal("500.00")

    def test_client_total_is_ignored(self, api, org):
        response = api.submit(org.user, api.payload(fare="300", claim_amount="99999", total="99999"))

        assert response.status_code == 201
        assert amount(response.json()["expense"]["claim_amount"]) == Decimal("300")

    def test_all_line_item_kinds(self, api, org):
        payload = api.payload(
            journey_allowance=[
                {"scope": "Daily Allowance Metro", "from_date": "2024-05-01", "to_date": "2024-05-02", "no_of_days": "2", "amount": "800"},
                {"scope": "Daily Allowance Metro", "from_date": "2024-05-03", "to_date": "2024-05-03", "no_of_days": 1, "amount": "850"},
            ],
            stay_allowance=[{"scope": "Daily Allowance Metro", "no_of_days": 3, "amount": 800}],
            hotel_expenses=[{"fromDate": "2024-05-01", "toDate": "2024-05-03", "sharing": "2", "location": "Mysuru", "billAmount": "1200"}],
            food_expenses=[{"from_date": "2024-05-01", "to_date": "2024-05-03", "bill_amount": "not a number"}],
        )
        response = api.submit(org.user, payload)

        assert response.status_code == 201
        expense = response.json()["expense"]
        assert amount(expense["claim_amount"]) == Decimal("6550")

        journey = expense["journey_allowance_grouped"]
        assert len(journey) == 1
        assert journey[0]["total_days"] == 3
        assert amount(journey[0]["amount_per_day"]) == Decimal("850")
        assert amount(journey[0]["total_amount"]) == Decimal("2550")
        assert expense["allowance_scope_totals"] == [{"scope": "Daily Allowance Metro", "total_days": 6}]

        hotel = expense["hotel_expenses"][0]
        assert hotel["from_date"] == "2024-05-01"
        assert hotel["sharing"] == 2
        assert amount(expense["food_expenses"][0]["bill_amount"]) == Decimal("0")

        assert {rate["scope"] for rate in expense["allowance_rates"]} == {"Daily Allowance Metro", "Site Allowance"}
        assert [coordinator["emp_code"] for coordinator in expense["coordinators"]] == ["EMP200"]

    def test_general_project_requires_site_details(self, api, org):
        response = api.submit(org.user, api.payload(project_code="General"))

        assert response.status_code == 400
        assert response.json()["message"] == "Site location is required for the general project"

    def test_general_project_stores_site_details(self, api, org):
        payload = api.payload(project_code="general", site_location="  Hosur  ", site_incharge_emp_code="EMP777")
        response = api.submit(org.user, payload)

        assert response.status_code == 201
        expense = response.json()["expense"]
        assert expense["site_location"] == "Hosur"
        assert expense["site_incharge_emp_code"] == "EMP777"

    def test_unknown_project(self, api, org):
        response = api.submit(org.user, api.payload(project_code="NOPE"))

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_malformed_data_field(self, api, client, org):
        response = client.post("/api/expenses/", data={"data": "{not json"}, headers=api.headers(org.user))

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid JSON in 'data' field"

    def test_missing_project_code_is_a_schema_error(self, api, org):
        response = api.submit(org.user, {"travel_data": [{"fare_amount": "100"}]})

        assert response.status_code == 400
        assert response.json()["message"] == "Validation error"

    def test_receipts_are_stored(self, api, org):
        files = {
            "travel_receipt": ("ticket.pdf", BytesIO(b"%PDF-1.4 ticket"), "application/pdf"),
            "special_approval": ("approval.pdf", BytesIO(b"%PDF-1.4 approval"), "application/pdf"),
        }
        response = api.submit(org.user, files=files)

        assert response.status_code == 201
        expense = response.json()["expense"]
        assert expense["travel_receipt_path"].endswith(".pdf")
        assert os.path.exists(expense["travel_receipt_path"])
        assert os.path.exists(expense["special_approval_path"])
        assert expense["hotel_receipt_path"] is None

    def test_special_approval_must_be_pdf(self, api, db, org):
        files = {"special_approval": ("approval.jpg", BytesIO(b"jpeg bytes"), "image/jpeg")}
        response = api.submit(org.user, files=files)

        assert response.status_code == 400
        assert response.json()["message"] == "special_approval must be a PDF file"
        assert db.query(Claim).count() == 0

    def test_submission_notifies_department_coordinators(self, api, org, sent_emails):
        api.submit(org.user)

        sent = recipients(sent_emails)
        assert len(sent) == 1
        assert sent[0][0] == "priya@example.com"
        assert sent[0][1].startswith("New Expense Submitted")

    def test_requires_bearer_token(self, client, org):
        response = client.get("/api/expenses/")

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Could not validate credentials"}

    def test_inactive_employee_is_refused(self, api, db, org):
        org.user.is_active = False
        db.commit()

        response = api.get(org.user, "/api/expenses/")
        assert response.status_code == 403


class TestReviewChain:
    """Coordinator, HR and accounts reviews"""

    def test_coordinator_approval(self, api, db, org):
        claim_id = api.submit(org.user).json()["expense"]["id"]

        response = api.review(org.coordinator, claim_id, "approve", "ok")

        assert response.status_code == 200
        expense = response.json()["expense"]
        assert expense["status"] == "coordinator_approved"
        assert expense["coordinator_reviewed_by"] == org.coordinator.id
        assert expense["coordinator_reviewed_at"] is not None
        assert expense["coordinator_comment"] == "ok"
        assert expense["hr_reviewed_by"] is None

        history = db.query(ClaimHistory).filter(ClaimHistory.claim_id == claim_id, ClaimHistory.action == "approved").all()
        assert len(history) == 1
        assert history[0].previous_status == "pending"
        assert history[0].new_status == "coordinator_approved"

    def test_hr_cannot_approve_pending_claim(self, api, db, org):
        claim_id = api.submit(org.user).json()["expense"]["id"]

        response = api.review(org.hr, claim_id, "approve", "looks fine")

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid transition: hr cannot approve expense in status pending"
        db.expire_all()
        claim = db.query(Claim).filter(Claim.id == claim_id).one()
        assert claim.status.value == "pending"
        assert claim.hr_reviewed_by is None

    def test_full_chain_to_accounts(self, api, org):
        claim_id = api.submit(org.user).json()["expense"]["id"]

        assert api.review(org.coordinator, claim_id).status_code == 200
        assert api.review(org.hr, claim_id).status_code == 200
        response = api.review(org.accounts, claim_id, "approve", "paid")

        expense = response.json()["expense"]
        assert expense["status"] == "accounts_approved"
        assert expense["coordinator_reviewed_by"] == org.coordinator.id
        assert expense["hr_reviewed_by"] == org.hr.id
        assert expense["accounts_reviewed_by"] == org.accounts.id

    def test_admin_acts_as_current_stage(self, api, org):
        claim_id = api.submit(org.user).json()["expense"]["id"]
        api.review(org.coordinator, claim_id)

        response = api.review(org.admin, claim_id, "reject", "duplicate")

        expense = response.json()["expense"]
        assert expense["status"] == "hr_rejected"
        assert expense["hr_reviewed_by"] == org.admin.id
        assert expense["hr_comment"] == "duplicate"

    def test_plain_user_cannot_review(self, api, org):
        claim_id = api.submit(org.user).json()["expense"]["id"]

        response = api.review(org.ops_user, claim_id)

        assert response.status_code == 400
        assert "user cannot approve" in response.json()["message"]

    def test_unknown_action_is_rejected_at_the_boundary(self, api, org):
        claim_id = api.submit(org.user).json()["expense"]["id"]

        response = api.review(org.coordinator, claim_id, "escalate")

        assert response.status_code == 400

    def test_coordinator_outside_department_cannot_review(self, api, org):
        claim_id = api.submit(org.user).json()["expense"]["id"]

        response = api.review(org.ops_coordinator, claim_id)

        assert response.status_code == 403

    def test_review_missing_claim(self, api, org):
        response = api.review(org.coordinator, 9999)

        assert response.status_code == 404


class TestSelfApproval:
    """Coordinators reviewing their own claims"""

    def test_unassigned_coordinator_cannot_approve_own_claim(self, api, db, org):
        claim_id = api.submit(org.ops_coordinator).json()["expense"]["id"]

        response = api.review(org.ops_coordinator, claim_id, "approve")

        assert response.status_code == 403
        assert "not allowed to approve/reject your own expense" in response.json()["message"]
        db.expire_all()
        assert db.query(Claim).filter(Claim.id == claim_id).one().status.value == "pending"

    def test_assigned_coordinator_may_approve_own_claim(self, api, org):
        claim_id = api.submit(org.coordinator).json()["expense"]["id"]

        response = api.review(org.coordinator, claim_id, "approve")

        assert response.status_code == 200
        assert response.json()["expense"]["status"] == "coordinator_approved"


class TestResubmission:
    """Editing a claim restarts the review cycle"""

    def test_edit_after_coordinator_rejection(self, api, db, org):
        claim_id = api.submit(org.user).json()["expense"]["id"]
        api.review(org.coordinator, claim_id, "reject", "missing bill")

        response = api.edit(org.user, claim_id, api.payload(fare="650", comment="bill added"))

        assert response.status_code == 200
        expense = response.json()["expense"]
        assert expense["status"] == "pending"
        assert amount(expense["claim_amount"]) == Decimal("650")
        for stage in ("coordinator", "hr", "accounts"):
            assert expense[f"{stage}_reviewed_by"] is None
            assert expense[f"{stage}_reviewed_at"] is None
            assert expense[f"{stage}_comment"] is None

        resubmitted = db.query(ClaimHistory).filter(ClaimHistory.claim_id == claim_id, ClaimHistory.action == "resubmitted").all()
        assert len(resubmitted) == 1
        assert resubmitted[0].previous_status == "rejected"
        assert resubmitted[0].comment == "bill added"

    def test_edit_after_hr_rejection_clears_every_stage(self, api, org):
        claim_id = api.submit(org.user).json()["expense"]["id"]
        api.review(org.coordinator, claim_id, "approve", "ok")
        api.review(org.hr, claim_id, "reject", "wrong project")

        expense = api.edit(org.user, claim_id).json()["expense"]

        assert expense["status"] == "pending"
        assert expense["coordinator_reviewed_by"] is None
        assert expense["hr_reviewed_by"] is None

    def test_edit_replaces_line_items(self, api, db, org):
        claim_id = api.submit(org.user).json()["expense"]["id"]
        payload = api.payload(fare="100", hotel_expenses=[{"billAmount": "900"}])
        payload["travel_data"].append({"fare_amount": "50"})

        expense = api.edit(org.user, claim_id, payload).json()["expense"]

        assert [amount(row["fare_amount"]) for row in expense["travel_data"]] == [Decimal("100"), Decimal("50")]
        assert amount(expense["claim_amount"]) == Decimal("1050")

    def test_invalid_edit_changes_nothing(self, api, db, org):
        claim_id = api.submit(org.user).json()["expense"]["id"]
        api.review(org.coordinator, claim_id, "reject", "no")

        response = api.edit(org.user, claim_id, api.payload(fare="0"))

        assert response.status_code == 400
        db.expire_all()
        claim = db.query(Claim).filter(Claim.id == claim_id).one()
        assert claim.status.value == "coordinator_rejected"
        assert claim.claim_amount == Decimal("500.00")
        assert len(claim.travel_segments) == 1

    def test_only_owner_or_admin_may_edit(self, api, org):
        claim_id = api.submit(org.user).json()["expense"]["id"]

        assert api.edit(org.ops_user, claim_id).status_code == 403
        assert api.edit(org.admin, claim_id).status_code == 200

    def test_accounts_approved_claim_is_locked(self, api, org):
        claim_id = api.submit(org.user).json()["expense"]["id"]
        for reviewer in (org.coordinator, org.hr, org.accounts):
            api.review(reviewer, claim_id)

        response = api.edit(org.user, claim_id)

        assert response.status_code == 400

    def test_receipt_can_be_deleted_on_edit(self, api, org):
        files = {"travel_receipt": ("ticket.pdf", BytesIO(b"%PDF-1.4 ticket"), "application/pdf")}
        expense = api.submit(org.user, files=files).json()["expense"]
        stored = expense["travel_receipt_path"]

        edited = api.edit(org.user, expense["id"], delete_travel_receipt=True).json()["expense"]

        assert edited["travel_receipt_path"] is None
        assert not os.path.exists(stored)

    def test_resubmission_notifies_coordinators(self, api, org, sent_emails):
        claim_id = api.submit(org.user).json()["expense"]["id"]
        api.review(org.coordinator, claim_id, "reject", "no")
        sent_emails.reset_mock()

        api.edit(org.user, claim_id, api.payload(comment="fixed"))

        assert recipients(sent_emails) == [("priya@example.com", f"Expense Resubmission - #{claim_id}")]


class TestReads:
    """Listing, detail and history"""

    def test_list_is_newest_first_and_role_filtered(self, api, org):
        first = api.submit(org.user).json()["expense"]["id"]
        second = api.submit(org.user, api.payload(fare="700")).json()["expense"]["id"]
        api.submit(org.ops_user)

        response = api.get(org.user, "/api/expenses/")

        assert response.status_code == 200
        assert [row["id"] for row in response.json()] == [second, first]

    def test_my_expenses_excludes_review_scope(self, api, org):
        team_claim = api.submit(org.user).json()["expense"]["id"]
        own_claim = api.submit(org.coordinator, api.payload(fare="250")).json()["expense"]["id"]

        everything = api.get(org.coordinator, "/api/expenses/").json()
        mine = api.get(org.coordinator, "/api/expenses/my")

        assert {row["id"] for row in everything} == {team_claim, own_claim}
        assert mine.status_code == 200
        assert [row["id"] for row in mine.json()] == [own_claim]
        assert api.get(org.admin, "/api/expenses/my").json() == []

    def test_detail_outside_visibility_is_forbidden(self, api, org):
        claim_id = api.submit(org.user).json()["expense"]["id"]

        assert api.get(org.ops_user, f"/api/expenses/{claim_id}").status_code == 403
        assert api.get(org.ops_user, f"/api/expenses/{claim_id}/history").status_code == 403
        assert api.get(org.hr, f"/api/expenses/{claim_id}").status_code == 403

    def test_detail_missing_claim(self, api, org):
        assert api.get(org.admin, "/api/expenses/9999").status_code == 404

    def test_history_endpoints(self, api, org):
        claim_id = api.submit(org.user).json()["expense"]["id"]
        api.review(org.coordinator, claim_id, "reject", "too high")
        api.edit(org.user, claim_id, api.payload(fare="300", comment="reduced"))

        history = api.get(org.user, f"/api/expenses/{claim_id}/history").json()
        assert [entry["action"] for entry in history] == ["resubmitted", "rejected", "submitted"]
        assert history[1]["actor_emp_code"] == "EMP200"
        assert history[1]["actor_role"] == "coordinator"

        with_data = api.get(org.user, f"/api/expenses/{claim_id}/history-with-data").json()
        assert amount(with_data[0]["travel_data"][0]["fare_amount"]) == Decimal("300")
        assert amount(with_data[-1]["travel_data"][0]["fare_amount"]) == Decimal("500")

    def test_pending_queue(self, api, org):
        claim_id = api.submit(org.user).json()["expense"]["id"]

        assert [row["id"] for row in api.get(org.coordinator, "/api/expenses/pending").json()] == [claim_id]
        assert api.get(org.hr, "/api/expenses/pending").json() == []
        assert api.get(org.user, "/api/expenses/pending").status_code == 403


class TestNotifications:
    """Emails sent after review decisions"""

    def test_coordinator_approval_alerts_submitter_and_hr(self, api, org, sent_emails):
        claim_id = api.submit(org.user).json()["expense"]["id"]
        sent_emails.reset_mock()

        api.review(org.coordinator, claim_id, "approve", "ok")

        assert recipients(sent_emails) == [
            ("rahul@example.com", "Expense Status Update: Coordinator Approved"),
            ("arjun@example.com", "Action Required: New Expense Review"),
        ]

    def test_rejection_alerts_previous_reviewers(self, api, org, sent_emails):
        claim_id = api.submit(org.user).json()["expense"]["id"]
        api.review(org.coordinator, claim_id, "approve", "ok")
        sent_emails.reset_mock()

        api.review(org.hr, claim_id, "reject", "policy breach")

        assert recipients(sent_emails) == [
            ("rahul@example.com", "Expense Status Update: HR Rejected"),
            ("priya@example.com", "Expense Rejected"),
        ]

    def test_email_failure_does_not_fail_the_review(self, api, db, org, sent_emails):
        claim_id = api.submit(org.user).json()["expense"]["id"]
        sent_emails.side_effect = NotificationError("SMTP server unavailable")

        response = api.review(org.coordinator, claim_id, "approve", "ok")

        assert response.status_code == 200
        db.expire_all()
        assert db.query(Claim).filter(Claim.id == claim_id).one().status.value == "coordinator_approved"
        assert sent_emails.call_count == 2


class TestRollback:
    """A store failure part-way through a write leaves the claim as it was"""

    @staticmethod
    def store_failure():
        return OperationalError("SELECT claim_history", {}, Exception("database is locked"))

    def history_actions(self, db, claim_id):
        return [entry.action for entry in db.query(ClaimHistory).filter(ClaimHistory.claim_id == claim_id).order_by(ClaimHistory.id)]

    def test_failed_resubmission_is_rolled_back(self, api, db, org, sent_emails):
        claim_id = api.submit(org.user).json()["expense"]["id"]
        api.review(org.coordinator, claim_id, "reject", "missing bill")
        sent_emails.reset_mock()
        files = {"travel_receipt": ("ticket.pdf", BytesIO(b"%PDF-1.4 ticket"), "application/pdf")}
        receipts_before = stored_receipts(org.user)

        with patch.object(history_service, "latest_entry", side_effect=self.store_failure()):
            response = api.edit(org.user, claim_id, api.payload(fare="900", comment="bill added"), files=files)

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Database operation failed: OperationalError"}

        db.expire_all()
        claim = db.query(Claim).filter(Claim.id == claim_id).one()
        assert claim.status.value == "coordinator_rejected"
        assert claim.claim_amount == Decimal("500.00")
        assert claim.coordinator_reviewed_by == org.coordinator.id
        assert claim.coordinator_reviewed_at is not None
        assert claim.coordinator_comment == "missing bill"
        assert [row.fare_amount for row in claim.travel_segments] == [Decimal("500.00")]
        assert claim.travel_receipt_path is None
        assert self.history_actions(db, claim_id) == ["submitted", "rejected"]
        assert stored_receipts(org.user) == receipts_before
        assert sent_emails.call_count == 0

    def test_failed_review_is_rolled_back(self, api, db, org, sent_emails):
        claim_id = api.submit(org.user).json()["expense"]["id"]
        sent_emails.reset_mock()

        with patch.object(history_service, "latest_entry", side_effect=self.store_failure()):
            response = api.review(org.coordinator, claim_id, "approve", "ok")

        assert response.status_code == 500
        assert response.json()["message"] == "Database operation failed: OperationalError"

        db.expire_all()
        claim = db.query(Claim).filter(Claim.id == claim_id).one()
        assert claim.status.value == "pending"
        assert claim.coordinator_reviewed_by is None
        assert claim.coordinator_reviewed_at is None
        assert claim.coordinator_comment is None
        assert claim.claim_amount == Decimal("500.00")
        assert len(claim.travel_segments) == 1
        assert self.history_actions(db, claim_id) == ["submitted"]
        assert sent_emails.call_count == 0

    def test_failed_submission_stores_nothing(self, api, db, org):
        files = {"travel_receipt": ("ticket.pdf", BytesIO(b"%PDF-1.4 ticket"), "application/pdf")}
        receipts_before = stored_receipts(org.user)

        with patch.object(history_service, "latest_entry", side_effect=self.store_failure()):
            response = api.submit(org.user, files=files)

        assert response.status_code == 500
        assert db.query(Claim).count() == 0
        assert db.query(ClaimHistory).count() == 0
        assert stored_receipts(org.user) == receipts_before
