"""
Error taxonomy for the card visibility and permission engine.

Validation errors are raised synchronously by mutating calls before anything
is written. Not-found errors are raised for edit-time lookups only; the view
path degrades to the public group instead of raising.
"""


class CardEngineError(Exception):
    """Base class for every error raised by the engine."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


# ------------------------------
# Validation
# ------------------------------

class ValidationError(CardEngineError):
    status_code = 400


class InvalidFieldPath(ValidationError):
    def __init__(self, path):
        super().__init__(f"Unknown field path: {path!r}")
        self.path = path


class InvalidShareCode(ValidationError):
    def __init__(self, code):
        super().__init__(f"Share code must be 6-8 uppercase letters or digits, got {code!r}")
        self.code = code


class DuplicateShareCode(ValidationError):
    def __init__(self, code):
        super().__init__(f"Share code already in use: {code}")
        self.code = code


class UncontrollableField(ValidationError):
    def __init__(self, path):
        super().__init__(f"Permissions cannot be set on field: {path}")
        self.path = path


class InvalidPermissionLevel(ValidationError):
    def __init__(self, level):
        super().__init__(f"Unknown permission level: {level!r}")
        self.level = level


class ImmutableGroupField(ValidationError):
    def __init__(self, field_name):
        super().__init__(f"Group field cannot be changed: {field_name}")
        self.field_name = field_name


class CannotDeleteDefaultGroup(ValidationError):
    def __init__(self, group_id):
        super().__init__(f"Default group cannot be deleted: {group_id}")
        self.group_id = group_id


class DelegateOfAnotherOwner(ValidationError):
    def __init__(self, delegate_id):
        super().__init__(f"Account is already a delegate of another owner: {delegate_id}")
        self.delegate_id = delegate_id


class InvalidGroup(ValidationError):
    status_code = 404

    def __init__(self, group_id):
        super().__init__(f"Unknown group: {group_id}")
        self.group_id = group_id


# ------------------------------
# Not found
# ------------------------------

class NotFoundError(CardEngineError):
    status_code = 404


class GroupNotFound(NotFoundError):
    def __init__(self, group_id):
        super().__init__(f"Group not found: {group_id}")
        self.group_id = group_id


class ContactNotFound(NotFoundError):
    def __init__(self, contact_id):
        super().__init__(f"Contact not found: {contact_id}")
        self.contact_id = contact_id


class DelegateNotFound(NotFoundError):
    def __init__(self, delegate_id):
        super().__init__(f"Delegate not found: {delegate_id}")
        self.delegate_id = delegate_id


class ProfileNotFound(NotFoundError):
    def __init__(self, account_id):
        super().__init__(f"Profile not found: {account_id}")
        self.account_id = account_id


# ------------------------------
# Permission
# ------------------------------

class FieldReadOnly(CardEngineError):
    status_code = 403

    def __init__(self, path):
        super().__init__(f"Field is read-only for this account: {path}")
        self.path = path


class NotAuthenticated(CardEngineError):
    status_code = 401


# ------------------------------
# Fatal
# ------------------------------

class CodeSpaceExhausted(CardEngineError):
    def __init__(self, attempts: int):
        super().__init__(f"Could not generate a unique code after {attempts} attempts")
        self.attempts = attempts
