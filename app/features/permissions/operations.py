"""
Operation registry.

Maps each protected operation to the catalog features that unlock it.
Route modules import their operation ids from here, which guarantees the
table is filled before any route is declared.
"""
from app.features.permissions.guard import register_operation


# Catalog features guarding the platform's own administration
FEATURE_MANAGEMENT = "feature-management"
ROLE_MANAGEMENT = "role-management"
ENTERPRISE_MANAGEMENT = "enterprise-management"
ENTERPRISE_USER_MANAGEMENT = "enterprise-user-management"
USER_MANAGEMENT = "user-management"

PLATFORM_FEATURES = (
    FEATURE_MANAGEMENT,
    ROLE_MANAGEMENT,
    ENTERPRISE_MANAGEMENT,
    ENTERPRISE_USER_MANAGEMENT,
    USER_MANAGEMENT,
)

# Feature catalog
LIST_FEATURES = "features.list"
GET_FEATURE = "features.get"
CREATE_FEATURE = "features.create"
UPDATE_FEATURE = "features.update"
DELETE_FEATURE = "features.delete"

# Roles and grants
LIST_ROLES = "roles.list"
GET_ROLE = "roles.get"
CREATE_ROLE = "roles.create"
UPDATE_ROLE = "roles.update"
REPLACE_ROLE_GRANTS = "roles.replace_grants"
REMOVE_ROLE_FEATURE = "roles.remove_feature"
DELETE_ROLE = "roles.delete"

# Enterprises
CREATE_ENTERPRISE = "enterprises.create"
LIST_ENTERPRISES = "enterprises.list"
GET_ENTERPRISE = "enterprises.get"
UPDATE_ENTERPRISE = "enterprises.update"
SET_ENTERPRISE_STATUS = "enterprises.set_status"

# Enterprise users
ADD_ENTERPRISE_USER = "enterprise_users.add"
LIST_ENTERPRISE_USERS = "enterprise_users.list"
LIST_DELEGABLE_FEATURES = "enterprise_users.features"
RESEND_RESET_LINK = "enterprise_users.resend_reset_link"
SET_USER_STATUS = "enterprise_users.set_status"

# Platform users
BLOCK_USER = "users.block"


register_operation(LIST_FEATURES, FEATURE_MANAGEMENT, ROLE_MANAGEMENT)
register_operation(GET_FEATURE, FEATURE_MANAGEMENT, ROLE_MANAGEMENT)
register_operation(CREATE_FEATURE, FEATURE_MANAGEMENT)
register_operation(UPDATE_FEATURE, FEATURE_MANAGEMENT)
register_operation(DELETE_FEATURE, FEATURE_MANAGEMENT)

register_operation(LIST_ROLES, ROLE_MANAGEMENT)
register_operation(GET_ROLE, ROLE_MANAGEMENT)
register_operation(CREATE_ROLE, ROLE_MANAGEMENT)
register_operation(UPDATE_ROLE, ROLE_MANAGEMENT)
register_operation(REPLACE_ROLE_GRANTS, ROLE_MANAGEMENT)
register_operation(REMOVE_ROLE_FEATURE, ROLE_MANAGEMENT)
register_operation(DELETE_ROLE, ROLE_MANAGEMENT)

register_operation(CREATE_ENTERPRISE, ENTERPRISE_MANAGEMENT)
register_operation(LIST_ENTERPRISES, ENTERPRISE_MANAGEMENT)
register_operation(GET_ENTERPRISE, ENTERPRISE_MANAGEMENT)
register_operation(UPDATE_ENTERPRISE, ENTERPRISE_MANAGEMENT)
register_operation(SET_ENTERPRISE_STATUS, ENTERPRISE_MANAGEMENT)

register_operation(ADD_ENTERPRISE_USER, ENTERPRISE_USER_MANAGEMENT, USER_MANAGEMENT)
register_operation(LIST_ENTERPRISE_USERS, ENTERPRISE_USER_MANAGEMENT, USER_MANAGEMENT)
register_operation(LIST_DELEGABLE_FEATURES, ENTERPRISE_USER_MANAGEMENT, USER_MANAGEMENT)
register_operation(RESEND_RESET_LINK, ENTERPRISE_USER_MANAGEMENT, USER_MANAGEMENT)
register_operation(SET_USER_STATUS, ENTERPRISE_USER_MANAGEMENT, USER_MANAGEMENT)

register_operation(BLOCK_USER, USER_MANAGEMENT)
