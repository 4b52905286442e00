#!/usr/bin/env python3
import sys

from dotenv import load_dotenv

load_dotenv()

from dindin.db.manage import main  # noqa: E402


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Uso: python manage.py init-db | seed-categories")
        sys.exit(1)
    main(sys.argv[1:])
