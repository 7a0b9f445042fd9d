"""Error taxonomy shared by the core and the scripts."""


class ShaheenError(Exception):
    """Base class for toolkit errors."""


class ConfigurationError(ShaheenError):
    """Setup-phase failure (missing credentials, unknown backend); fatal for a script."""


class NotFound(ShaheenError):
    def __init__(self, collection: str, key: str):
        self.collection = collection
        self.key = key
        super().__init__(f"{collection}/{key} not found")


class NoAttendanceRecords(ShaheenError):
    def __init__(self, student_id: str):
        self.student_id = student_id
        super().__init__(f"No attendance records found for student {student_id}")


class InvalidTimestamp(ShaheenError):
    """Malformed or unparseable event time; callers skip the record and log it."""

    def __init__(self, value, reason: str = "unparseable"):
        self.value = value
        super().__init__(f"Invalid timestamp {value!r}: {reason}")


class DuplicateWrite(ShaheenError):
    """Write to an existing deterministic key. Benign: the write is skipped."""

    def __init__(self, collection: str, key: str):
        self.collection = collection
        self.key = key
        super().__init__(f"{collection}/{key} already exists")


class WriteConflict(ShaheenError):
    """A conditional write kept losing to concurrent writers."""

    def __init__(self, collection: str, key: str, attempts: int):
        self.collection = collection
        self.key = key
        self.attempts = attempts
        super().__init__(f"{collection}/{key}: conditional write failed after {attempts} attempts")
