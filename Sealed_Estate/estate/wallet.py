from typing import Callable, Optional

from Sealed_Estate.fhe_shared.errors import UserDeclinedError


class WalletSession:
    """Session provider: a connected wallet address plus a transaction approver.

    approve is consulted once per transaction with the action name; returning
    False is the holder declining to sign.
    """

    def __init__(
        self,
        address: Optional[str] = None,
        *,
        approve: Optional[Callable[[str], bool]] = None,
    ):
        self._address = address
        self._approve = approve

    def connect(self, address: str) -> None:
        if not address:
            raise ValueError("wallet address must be non-empty")
        self._address = address

    def disconnect(self) -> None:
        self._address = None

    def is_active(self) -> bool:
        return self._address is not None

    def current_address(self) -> Optional[str]:
        return self._address

    def authorize(self, action: str) -> None:
        if self._approve is not None and not self._approve(action):
            raise UserDeclinedError(action)
