# Overview: Request, role and error-translation decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .limits import LimitExceededError
from .services import session_service
from .services.auth_service import PasswordValidationError
from .services.concurrency import ConcurrencyConflictError
from .services.integration_service import IntegrationError
from .services.orders_service import OrderError
from .services.subscription_service import ConfigurationError, SubscriptionError
from .services.tenant_service import TenantAccessError
from .integrations.shopify_client import ShopifyError
from .settlement import InvalidTransitionError
from .validation import ConflictError, ValidationError


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'merchant_id')


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.merchant_id: The merchant captured on the session (None for platform admins)
    - g.session_context: The full SessionContext object

    SECURITY: Returns 401 if there is no bearer token, the token is invalid,
    expired or revoked, or the user/merchant has been deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.merchant_id = context.merchant_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require the authenticated user to hold one of roles. Use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.current_user.role not in roles:
                current_app.logger.warning(
                    "Role denied: user %s (%s) on %s %s",
                    g.current_user.id, g.current_user.role, request.method, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_merchant(f):
    """Require a merchant tenant context (merchant owner or staff). Use after @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        if g.merchant_id is None:
            return jsonify({"error": "Merchant account required"}), 403
        return f(*args, **kwargs)
    return decorated_function


def handle_service_errors(action: str):
    """
    Translate service exceptions into JSON error responses.

    Anything unexpected is logged with a traceback and returned as a 500
    without internals.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except LimitExceededError as e:
                return jsonify(e.to_dict()), 403
            except InvalidTransitionError as e:
                body = e.to_dict()
                body.update({"current": e.current, "target": e.target})
                return jsonify(body), 400
            except ValidationError as e:
                return jsonify(e.to_dict()), 400
            except PasswordValidationError as e:
                return jsonify({"error": str(e), "field": "password"}), 400
            except ConflictError as e:
                return jsonify({"error": str(e)}), 409
            except ConcurrencyConflictError as e:
                return jsonify({"error": str(e), "attempts": e.attempts}), 409
            except TenantAccessError as e:
                return jsonify({"error": str(e)}), 404
            except SubscriptionError as e:
                return jsonify({"error": str(e), "details": e.details}), 404
            except (OrderError, IntegrationError) as e:
                return jsonify({"error": str(e)}), 400
            except ShopifyError as e:
                return jsonify({"error": str(e)}), 502
            except ConfigurationError:
                current_app.logger.exception("Server misconfigured while trying to %s", action)
                return jsonify({"error": "Server misconfigured"}), 500
            except Exception:
                current_app.logger.exception("Failed to %s", action)
                return jsonify({"error": "Internal server error"}), 500

        return decorated_function
    return decorator
