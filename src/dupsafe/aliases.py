from dupsafe.core.models import Security, Speed

SECURITY_ALIASES = {
    "low": Security.LOW,
    "medium": Security.MEDIUM,
    "high": Security.HIGH,
    "maximum": Security.MAXIMUM,
    "max": Security.MAXIMUM,
}

SECURITY_CHOICES = list(SECURITY_ALIASES.keys())

SECURITY_HELP_TEXT = (
    "Digest strength (default: high):\n"
    "  low, medium : fast digests are acceptable\n"
    "  high        : BLAKE3 (SHA-256 for text files)\n"
    "  maximum     : SHA-256 (XXH3 only for media with --speed fastest)\n"
)

SPEED_ALIASES = {
    "fastest": Speed.FASTEST,
    "fast": Speed.FASTEST,
    "balanced": Speed.BALANCED,
    "most-secure": Speed.MOST_SECURE,
    "mostsecure": Speed.MOST_SECURE,
}

SPEED_CHOICES = list(SPEED_ALIASES.keys())

SPEED_HELP_TEXT = (
    "Hashing speed preference (default: balanced):\n"
    "  fastest     : XXH3 where security allows\n"
    "  balanced    : BLAKE3\n"
    "  most-secure : follow --security only\n"
)

EPILOG_TEXT = """
Examples:
  Find exact and near duplicates in two folders
  %(prog)s scan ~/Documents ~/Downloads

  Same as above, exact duplicates only, fastest hashing for media
  %(prog)s scan ~/Pictures --no-text --no-images --speed fastest

  Move every duplicate except the first of each group into quarantine
  %(prog)s scan ~/Downloads --quarantine-dupes --force

  Inspect, undo or finalize the quarantine
  %(prog)s list
  %(prog)s restore ~/Downloads/report (1).pdf
  %(prog)s rollback
  %(prog)s commit --trash

  Bring back a file when the quarantine state file was lost
  %(prog)s log
  %(prog)s recover ~/Downloads/report.pdf
"""
