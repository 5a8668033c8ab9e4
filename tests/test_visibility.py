"""
Visibility Tests
Which claims each role can list and read
"""

from claimflow.models.claim import Claim
from claimflow.models.employee import CoordinatorDepartment
from claimflow.schemas.claim import ClaimEdit, ClaimPayload
from claimflow.services.claim_service import claim_service
from claimflow.services.visibility import is_visible, visibility_predicate


def submit(db, employee, fare="500"):
    return claim_service.submit(db, employee, ClaimPayload.model_validate({
        "project_code": "PRJ-101",
        "travel_data": [{"fare_amount": fare}],
    }))


def visible_ids(db, viewer):
    return {claim.id for claim in db.query(Claim).filter(visibility_predicate(viewer))}


class TestVisibility:
    """Role-scoped claim visibility"""

    def test_user_sees_only_own_claims(self, db, org):
        own = submit(db, org.user)
        submit(db, org.ops_user)

        assert visible_ids(db, org.user) == {own.id}

    def test_admin_sees_everything(self, db, org):
        first = submit(db, org.user)
        second = submit(db, org.ops_user)

        assert visible_ids(db, org.admin) == {first.id, second.id}

    def test_coordinator_sees_assigned_departments_and_own(self, db, org):
        engineering_claim = submit(db, org.user)
        operations_claim = submit(db, org.ops_user)
        own_claim = submit(db, org.ops_coordinator)

        assert visible_ids(db, org.coordinator) == {engineering_claim.id}
        assert visible_ids(db, org.ops_coordinator) == {own_claim.id}

        db.add(CoordinatorDepartment(coordinator_id=org.ops_coordinator.id, department_id=org.operations.id))
        db.commit()
        assert visible_ids(db, org.ops_coordinator) == {operations_claim.id, own_claim.id}

    def test_hr_sees_claims_past_coordinator_review(self, db, org):
        waiting = submit(db, org.user)
        reviewed = submit(db, org.user, fare="700")
        claim_service.review(db, org.coordinator, reviewed.id, "reject", "no")
        own = submit(db, org.hr)

        assert visible_ids(db, org.hr) == {reviewed.id, own.id}
        assert not is_visible(db, org.hr, waiting.id)

    def test_accounts_sees_claims_past_hr_review(self, db, org):
        claim = submit(db, org.user)
        claim_service.review(db, org.coordinator, claim.id, "approve")
        assert visible_ids(db, org.accounts) == set()

        claim_service.review(db, org.hr, claim.id, "approve")
        assert visible_ids(db, org.accounts) == {claim.id}

    def test_resubmission_hides_claim_from_later_stages_again(self, db, org):
        claim = submit(db, org.user)
        claim_service.review(db, org.coordinator, claim.id, "approve")
        claim_service.review(db, org.hr, claim.id, "reject", "wrong project")
        claim_service.resubmit(db, org.user, claim.id, ClaimEdit.model_validate({
            "project_code": "PRJ-101",
            "travel_data": [{"fare_amount": "450"}],
        }))

        assert not is_visible(db, org.hr, claim.id)
        assert is_visible(db, org.coordinator, claim.id)

    def test_pending_queue_per_role(self, db, org):
        first = submit(db, org.user)
        second = submit(db, org.user, fare="800")
        submit(db, org.ops_user)
        claim_service.review(db, org.coordinator, second.id, "approve")

        assert [claim.id for claim in claim_service.pending_claims(db, org.coordinator)] == [first.id]
        assert [claim.id for claim in claim_service.pending_claims(db, org.hr)] == [second.id]
        assert claim_service.pending_claims(db, org.accounts) == []
        assert len(claim_service.pending_claims(db, org.admin)) == 3
