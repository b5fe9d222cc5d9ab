from landverify.core.constants import UserRole

# Capabilities per role. "*" grants everything.
ROLE_PERMISSIONS = {
    UserRole.ADMIN: {"*"},
    UserRole.GOVERNMENT: {
        "verification:request",
        "verification:read_any",
        "verification:assign",
        "verification:work_step",
        "verification:update_findings",
        "verification:update_status",
        "verification:score",
        "verification:report",
        "verification:manage_payments",
        "verification:client_update",
    },
    UserRole.SURVEYOR: {
        "verification:work_step",
        "verification:update_findings",
    },
    UserRole.CITIZEN: {"verification:request"},
    UserRole.AGENT: {"verification:request"},
    UserRole.COURT: {"verification:request", "verification:read_any"},
}


def has_permission(role, action: str) -> bool:
    try:
        role = UserRole(role)
    except ValueError:
        return False
    granted = ROLE_PERMISSIONS.get(role, set())
    return "*" in granted or action in granted
