# Prints a bcrypt hash to put in DEBUG_PASSWORD_HASH
import getpass
import sys

from nacos_vote.security import hash_password, verify_password


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    password = argv[0] if argv else getpass.getpass("Backup page password: ")
    if not password:
        print("Password must not be empty", file=sys.stderr)
        return 1
    hashed = hash_password(password)
    # Skip printing if the hash does not round-trip
    if not verify_password(password, hashed):
        print("Hash verification failed", file=sys.stderr)
        return 1
    print(f"DEBUG_PASSWORD_HASH={hashed}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
