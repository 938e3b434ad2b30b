# phaseloop/__main__.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from phaseloop.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
