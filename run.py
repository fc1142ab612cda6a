import sys

from pr_review.cli import main


if __name__ == "__main__":
    sys.exit(main())
