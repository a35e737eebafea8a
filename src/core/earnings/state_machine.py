from src.common.constants import PayoutStatus


class PayoutStateMachine:
    ALLOWED_TRANSITIONS = {
        PayoutStatus.PENDING: [PayoutStatus.PROCESSING, PayoutStatus.FAILED],
        PayoutStatus.PROCESSING: [PayoutStatus.COMPLETED, PayoutStatus.FAILED],
        PayoutStatus.COMPLETED: [],
        PayoutStatus.FAILED: [],
    }

    TERMINAL = (PayoutStatus.COMPLETED, PayoutStatus.FAILED)

    @staticmethod
    def can_transition(current_status: str, new_status: str) -> bool:
        try:
            curr = PayoutStatus(current_status)
            new = PayoutStatus(new_status)
            return new in PayoutStateMachine.ALLOWED_TRANSITIONS.get(curr, [])
        except ValueError:
            return False

    @staticmethod
    def is_terminal(status: str) -> bool:
        try:
            return PayoutStatus(status) in PayoutStateMachine.TERMINAL
        except ValueError:
            return False
