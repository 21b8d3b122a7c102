from app.core.locks import KeyedLock


class AppState:
    def __init__(self) -> None:
        # Guards the pending-response ledger per conversation key.
        self.pending_locks = KeyedLock()


state = AppState()
