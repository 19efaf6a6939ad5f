"""
core.domain.exceptions — Domain-specific exception hierarchy.

These exceptions represent business-rule violations inside service layers.
They are deliberately **not** DRF exceptions so that the domain layer stays
framework-agnostic.  The global DRF exception handler
(``core.domain.exception_handler``) maps them to HTTP responses.

Every exception carries a stable, machine-readable ``code`` that clients
switch on; the human-readable message may change freely.

Mapping cheatsheet
------------------
┌──────────────────────────────┬──────────────────────────────┬──────┐
│ Domain Exception             │ code                         │ HTTP │
├──────────────────────────────┼──────────────────────────────┼──────┤
│ DomainError                  │ INVALID_INPUT                │ 400  │
│ SignatureRequired            │ SIGNATURE_REQUIRED           │ 400  │
│ SignatureFileUnsupported     │ SIGNATURE_FILE_UNSUPPORTED   │ 400  │
│ FileTooLarge                 │ FILE_TOO_LARGE               │ 400  │
│ PermissionDenied             │ FORBIDDEN                    │ 403  │
│ NotFound                     │ NOT_FOUND                    │ 404  │
│ Conflict                     │ CONFLICT                     │ 409  │
│ InvalidTransition            │ INVALID_CASE_STATUS          │ 409  │
│   SignedCaseCanOnlyBeClosed  │ SIGNED_CASE_CAN_ONLY_BE_...  │ 409  │
│   OnlySignedCaseCanBeClosed  │ ONLY_SIGNED_CASE_CAN_BE_...  │ 409  │
│   MissingRequiredDocuments   │ MISSING_REQUIRED_DOCUMENTS   │ 409  │
│   DirVillageValidationReq.   │ DIR_VILLAGE_VALIDATION_...   │ 409  │
│   DirVillageSignatureReq.    │ DIR_VILLAGE_SIGNATURE_...    │ 409  │
│ AlreadyValidated             │ ALREADY_VALIDATED            │ 409  │
│ NoPsychologistAvailable      │ NO_PSYCHOLOGIST_AVAILABLE    │ 409  │
│ ServiceUnavailable           │ SERVICE_UNAVAILABLE          │ 503  │
└──────────────────────────────┴──────────────────────────────┴──────┘

Recommended usage inside a service::

    from core.domain.exceptions import OnlySignedCaseCanBeClosed

    if case.status != CaseStatus.SIGNED:
        raise OnlySignedCaseCanBeClosed(current=case.status)
"""

from __future__ import annotations


class DomainError(Exception):
    """
    Base class for all domain / business-rule errors.

    Catch this at the view boundary and convert to a 400 Bad Request.
    """

    code = "INVALID_INPUT"
    default_message = "A business rule was violated."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ── 400 ──────────────────────────────────────────────────────────────

class SignatureRequired(DomainError):
    code = "SIGNATURE_REQUIRED"
    default_message = "A signature file is required for this validation."


class SignatureFileUnsupported(DomainError):
    code = "SIGNATURE_FILE_UNSUPPORTED"
    default_message = "The signature must be an image or a PDF file."


class FileTooLarge(DomainError):
    code = "FILE_TOO_LARGE"
    default_message = "The uploaded file exceeds the maximum allowed size."


# ── 403 / 404 ────────────────────────────────────────────────────────

class PermissionDenied(DomainError):
    """
    The authenticated user does not have the required role, capability
    or case relationship for this operation.

    Maps to HTTP 403.
    """

    code = "FORBIDDEN"
    default_message = "You do not have permission to perform this action."


class NotFound(DomainError):
    """
    The requested resource does not exist.

    Maps to HTTP 404.
    """

    code = "NOT_FOUND"
    default_message = "The requested resource was not found."


# ── 409 ──────────────────────────────────────────────────────────────

class Conflict(DomainError):
    """
    The operation conflicts with the current state of the resource.

    Maps to HTTP 409.
    """

    code = "CONFLICT"
    default_message = "The operation conflicts with the current state."


class InvalidTransition(Conflict):
    """
    A state-machine transition that is not allowed from the current status.

    Inherits from ``Conflict`` because an invalid transition IS a conflict
    with the resource's current state.  Maps to HTTP 409.

    Example::

        raise InvalidCaseStatus(
            current="PENDING",
            target="CLOSED",
            reason="Case must be signed before closing.",
        )
    """

    code = "INVALID_CASE_STATUS"
    default_message = None

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        target: str | None = None,
        reason: str | None = None,
    ) -> None:
        if message is None:
            parts = ["Invalid state transition"]
            if current and target:
                parts.append(f"from '{current}' to '{target}'")
            elif current:
                parts.append(f"from '{current}'")
            if reason:
                parts.append(f"({reason})")
            message = " ".join(parts) + "."
        super().__init__(message)
        self.current = current
        self.target = target
        self.reason = reason


class InvalidCaseStatus(InvalidTransition):
    code = "INVALID_CASE_STATUS"


class SignedCaseCanOnlyBeClosed(InvalidTransition):
    code = "SIGNED_CASE_CAN_ONLY_BE_CLOSED"

    def __init__(self, message: str | None = None, **kwargs) -> None:
        kwargs.setdefault("reason", "a signed case can only be closed")
        super().__init__(message, **kwargs)


class OnlySignedCaseCanBeClosed(InvalidTransition):
    code = "ONLY_SIGNED_CASE_CAN_BE_CLOSED"

    def __init__(self, message: str | None = None, **kwargs) -> None:
        kwargs.setdefault("reason", "only a signed case can be closed")
        super().__init__(message, **kwargs)


class MissingRequiredDocuments(InvalidTransition):
    code = "MISSING_REQUIRED_DOCUMENTS"

    def __init__(self, message: str | None = None, **kwargs) -> None:
        super().__init__(
            message or "Both the initial form and the DPE report are required.",
            **kwargs,
        )


class DirVillageValidationRequired(InvalidTransition):
    code = "DIR_VILLAGE_VALIDATION_REQUIRED"

    def __init__(self, message: str | None = None, **kwargs) -> None:
        super().__init__(
            message or "The village director must validate the case first.",
            **kwargs,
        )


class DirVillageSignatureRequired(InvalidTransition):
    code = "DIR_VILLAGE_SIGNATURE_REQUIRED"

    def __init__(self, message: str | None = None, **kwargs) -> None:
        super().__init__(
            message or "The village director's signature is missing.",
            **kwargs,
        )


class AlreadyValidated(Conflict):
    code = "ALREADY_VALIDATED"
    default_message = "This validation has already been recorded."


class NoPsychologistAvailable(Conflict):
    """
    Case creation could not assign a psychologist because the village
    has none.  The whole creation is rolled back; retry once the
    village is staffed.
    """

    code = "NO_PSYCHOLOGIST_AVAILABLE"
    default_message = "No psychologist is available in this village."


# ── 503 ──────────────────────────────────────────────────────────────

class ServiceUnavailable(DomainError):
    """A backing service (database, storage) failed; the call may be retried."""

    code = "SERVICE_UNAVAILABLE"
    default_message = "The service is temporarily unavailable. Please retry."
