class EstateError(Exception):
    pass


# ─── Session ───

class SessionError(EstateError):
    pass

class SessionMissingError(SessionError):
    def __init__(self, operation):
        self.operation = operation
        message = f"No active wallet session for {operation}"
        super().__init__(message)


# ─── Input ───

class InvalidInputError(EstateError):
    def __init__(self, field, value, reason):
        self.field = field
        self.value = value
        message = f"Invalid {field} {value!r}: {reason}"
        super().__init__(message)

class InvalidAmountError(InvalidInputError):
    def __init__(self, value, reason="amount must be a non-negative integer"):
        super().__init__("amount", value, reason)

class IdCollisionError(EstateError):
    def __init__(self, record_id):
        self.record_id = record_id
        message = f"Record id {record_id} already exists"
        super().__init__(message)


# ─── Collaborators (encryption / proof service) ───

class CollaboratorError(EstateError):
    pass

class FheInitError(CollaboratorError):
    def __init__(self, message):
        message = f"FHE initialization failed: {message}"
        super().__init__(message)

class FheNotInitializedError(CollaboratorError):
    def __init__(self, operation):
        self.operation = operation
        message = f"FHE engine not initialized before {operation}"
        super().__init__(message)

class EncryptionFailedError(CollaboratorError):
    def __init__(self, message):
        message = f"Encryption failed: {message}"
        super().__init__(message)

class HandleUnavailableError(CollaboratorError):
    def __init__(self, record_id):
        self.record_id = record_id
        message = f"Ciphertext handle for {record_id} could not be read"
        super().__init__(message)

class ProofGenerationFailedError(CollaboratorError):
    def __init__(self, message):
        message = f"Decryption proof failed: {message}"
        super().__init__(message)

class AccessDeniedError(CollaboratorError):
    def __init__(self, handle, address):
        self.handle = handle
        self.address = address
        message = f"Address {address} is not allowed to decrypt {handle}"
        super().__init__(message)


# ─── Submission (persistence write path) ───

class SubmissionError(EstateError):
    pass

class SubmissionRejectedError(SubmissionError):
    user_declined = False

    def __init__(self, operation, reason):
        self.operation = operation
        self.reason = reason
        message = f"{operation} rejected: {reason}"
        super().__init__(message)

class UserDeclinedError(SubmissionRejectedError):
    user_declined = True

    def __init__(self, operation):
        super().__init__(operation, "user rejected transaction")

class InvalidProofError(SubmissionRejectedError):
    def __init__(self, operation):
        super().__init__(operation, "invalid proof")

class RecordAlreadyExistsError(SubmissionRejectedError):
    def __init__(self, record_id):
        self.record_id = record_id
        super().__init__("create_record", f"record {record_id} already exists")


# ─── Races ───

class RaceConditionError(EstateError):
    pass

class AlreadyVerifiedError(RaceConditionError):
    def __init__(self, record_id):
        self.record_id = record_id
        message = f"Data already verified: {record_id}"
        super().__init__(message)

class VerificationInProgressError(EstateError):
    def __init__(self, record_id):
        self.record_id = record_id
        message = f"Verification already in progress for {record_id}"
        super().__init__(message)


# ─── Ledger / data ───

class LedgerUnavailableError(EstateError):
    def __init__(self, message):
        message = f"Ledger unavailable: {message}"
        super().__init__(message)

class RecordNotFoundError(EstateError):
    def __init__(self, record_id):
        self.record_id = record_id
        message = f"Record {record_id} not found"
        super().__init__(message)

class DataIntegrityError(EstateError):
    def __init__(self, record_id, missing):
        self.record_id = record_id
        self.missing = missing
        message = f"Record {record_id} is missing fields: {', '.join(missing)}"
        super().__init__(message)

class SyncError(EstateError):
    def __init__(self, message):
        message = f"Refresh failed: {message}"
        super().__init__(message)

class OperationFailedError(EstateError):
    def __init__(self, operation, cause):
        self.operation = operation
        self.cause = cause
        message = f"{operation} failed: {cause}"
        super().__init__(message)
