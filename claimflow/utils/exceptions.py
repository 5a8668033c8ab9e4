"""
Workflow Exceptions
Error taxonomy shared by services and rendered as JSON by the API
"""


class ClaimFlowError(Exception):
    """Base class for all workflow errors"""
    
    status_code = 500
    
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ClaimFlowError):
    """Malformed or missing input, non-positive total, wrong attachment type"""
    
    status_code = 400


class AuthorizationError(ClaimFlowError):
    """Role lacks permission, or the self-approval rule was violated"""
    
    status_code = 403


class InvalidTransitionError(ClaimFlowError):
    """Action not permitted from the current status for this role"""
    
    status_code = 400
    
    def __init__(self, role: str, action: str, current_status: str):
        super().__init__(
            f"Invalid transition: {role} cannot {action} expense in status {current_status}"
        )
        self.role = role
        self.action = action
        self.current_status = current_status


class NotFoundError(ClaimFlowError):
    """Claim, employee or project does not exist"""
    
    status_code = 404


class PersistenceError(ClaimFlowError):
    """Underlying store failure; the unit of work has been rolled back"""
    
    status_code = 500


class NotificationError(ClaimFlowError):
    """Email dispatch failure. Logged by the dispatcher, never surfaced"""
