# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import sys

from esmshift.cli import main

sys.exit(main())
