"""
Operational commands.

    oneaccount mfa-setup --enable --steps email_channel,google_authenticator
    oneaccount prune-mfa-attempts
    oneaccount mfa-unenroll --email user@example.com --method google_authenticator
    oneaccount api-key-create --email user@example.com --name ci --permission read
    oneaccount user-role --email user@example.com --role admin
"""
import argparse
import logging
import sys
from datetime import datetime, timezone

from oneaccount.core.config import get_settings
from oneaccount.core.errors import OneAccountError
from oneaccount.db.base import Base
from oneaccount.db.session import SessionLocal, engine
from oneaccount.models import User, UserRole, VerificationMethod
from oneaccount.services.container import Services, build_services

logger = logging.getLogger("oneaccount.cli")


def _find_user(db, email: str) -> User:
    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise SystemExit(f"No user with email {email}")
    return user


def cmd_mfa_setup(args, db, services: Services) -> int:
    steps = [s.strip() for s in (args.steps or "").split(",") if s.strip()]
    if args.enable and not steps:
        steps = services.settings_manager.get_mfa_config(db).steps
        if not steps:
            print("Enabling MFA requires --steps", file=sys.stderr)
            return 1
    services.settings_manager.set_mfa_config(db, args.enable, not args.no_api_management, *steps)
    policy = services.settings_manager.get_mfa_config(db)
    state = "enabled" if policy.enabled else "disabled"
    print(f"MFA {state}; steps: {', '.join(policy.steps) or '(none)'}; API management: {policy.allow_api_management}")
    return 0


def cmd_prune(args, db, services: Services) -> int:
    deleted = services.attempt_store.prune_expired(db)
    print(f"Deleted {deleted} expired MFA attempts")
    return 0


def cmd_unenroll(args, db, services: Services) -> int:
    user = _find_user(db, args.email)
    if not services.orchestrator.un_enroll_user(db, user, args.method):
        print(f"{args.email} is not enrolled to {args.method}", file=sys.stderr)
        return 1
    print(f"Un-enrolled {args.email} from {args.method}")
    return 0


def cmd_api_key_create(args, db, services: Services) -> int:
    user = _find_user(db, args.email)
    expires_at = None
    if args.expires:
        expires_at = datetime.strptime(args.expires, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    api_key, raw_key = services.api_keys.create(
        db,
        args.name,
        user.id,
        description=args.description,
        expires_at=expires_at,
        permissions=args.permission,
    )
    print(f"API key {api_key.id} created. Store it now, it will not be shown again:")
    print(raw_key)
    return 0


def cmd_user_role(args, db, services: Services) -> int:
    user = _find_user(db, args.email)
    user.role = UserRole(args.role)
    db.add(user)
    db.commit()
    logger.info(f"User {user.id} role set to {user.role.value}")
    print(f"{args.email} is now {user.role.value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="oneaccount", description="OneAccount administration")
    sub = parser.add_subparsers(dest="command", required=True)

    setup = sub.add_parser("mfa-setup", help="Enable or disable MFA and choose its steps")
    toggle = setup.add_mutually_exclusive_group(required=True)
    toggle.add_argument("--enable", dest="enable", action="store_true")
    toggle.add_argument("--disable", dest="enable", action="store_false")
    setup.add_argument("--steps", help="Comma separated, in order, e.g. email_channel,google_authenticator")
    setup.add_argument("--no-api-management", action="store_true", help="Lock MFA settings against API changes")
    setup.set_defaults(func=cmd_mfa_setup)

    prune = sub.add_parser("prune-mfa-attempts", help="Delete expired MFA attempts")
    prune.set_defaults(func=cmd_prune)

    unenroll = sub.add_parser("mfa-unenroll", help="Reset a user's enrollment to an MFA method")
    unenroll.add_argument("--email", required=True)
    unenroll.add_argument("--method", required=True, choices=[m.value for m in VerificationMethod])
    unenroll.set_defaults(func=cmd_unenroll)

    key = sub.add_parser("api-key-create", help="Create an API key and print it once")
    key.add_argument("--email", required=True, help="Owner of the key")
    key.add_argument("--name", required=True)
    key.add_argument("--description", default="")
    key.add_argument("--expires", help="YYYY-MM-DD; omit for a key that never expires")
    key.add_argument("--permission", action="append", default=[])
    key.set_defaults(func=cmd_api_key_create)

    role = sub.add_parser("user-role", help="Grant or revoke the admin role")
    role.add_argument("--email", required=True)
    role.add_argument("--role", required=True, choices=[r.value for r in UserRole])
    role.set_defaults(func=cmd_user_role)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    Base.metadata.create_all(bind=engine)
    services = build_services(settings)
    db = SessionLocal()
    try:
        return args.func(args, db, services)
    except OneAccountError as e:
        print(f"{e.error_code}: {e.message}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
