"""MSP-based access control for organization-specific transaction functions."""
from .errors import AccessDenied, ChaincodeError

WHISTLEBLOWERS_ORG_MSP = "WhistleblowersOrgMSP"
VERIFIER_ORG_MSP = "VerifierOrgMSP"
LEGAL_ORG_MSP = "LegalOrgMSP"

ALL_ORG_MSPS = (WHISTLEBLOWERS_ORG_MSP, VERIFIER_ORG_MSP, LEGAL_ORG_MSP)

WHISTLEBLOWER_PRIVATE_COLLECTION = "WhistleblowerPrivateCollection"
VERIFIER_PRIVATE_COLLECTION = "VerifierPrivateCollection"
LEGAL_PRIVATE_COLLECTION = "LegalPrivateCollection"


class ClientIdentity:
    def __init__(self, msp_id: str, certificate_pem: str = ""):
        self.msp_id = msp_id
        self.certificate_pem = certificate_pem

    def get_msp_id(self) -> str:
        if not self.msp_id:
            raise ChaincodeError("failed to get client MSP ID: identity has no MSP")
        return self.msp_id


def get_client_org_id(ctx) -> str:
    return ctx.client_identity.get_msp_id()


def verify_client_org_multiple(ctx, allowed_msps) -> None:
    client_msp = get_client_org_id(ctx)
    if client_msp not in allowed_msps:
        raise AccessDenied(
            f"access denied: caller MSP '{client_msp}' not in allowed list {list(allowed_msps)}"
        )


def verify_client_org(ctx, allowed_msp: str) -> None:
    client_msp = get_client_org_id(ctx)
    if client_msp != allowed_msp:
        raise AccessDenied(
            f"access denied: caller MSP '{client_msp}' is not authorized, required '{allowed_msp}'"
        )


def require_whistleblower_org(ctx) -> None:
    verify_client_org(ctx, WHISTLEBLOWERS_ORG_MSP)


def require_verifier_org(ctx) -> None:
    verify_client_org(ctx, VERIFIER_ORG_MSP)


def require_legal_org(ctx) -> None:
    verify_client_org(ctx, LEGAL_ORG_MSP)


def require_any_org(ctx) -> None:
    verify_client_org_multiple(ctx, ALL_ORG_MSPS)


def _passes(check, ctx) -> bool:
    try:
        check(ctx)
    except ChaincodeError:
        return False
    return True


def is_whistleblower_org(ctx) -> bool:
    return _passes(require_whistleblower_org, ctx)


def is_verifier_org(ctx) -> bool:
    return _passes(require_verifier_org, ctx)


def is_legal_org(ctx) -> bool:
    return _passes(require_legal_org, ctx)
