# Core type aliases for Kestrel's data model.
# Every runtime datum is a `Value` (kestrel.types.value): a tagged handle that is
# either an immediate scalar or a reference to a heap object.
#
# Naming guidance:
# - Form: Use in reader/compiler code to denote syntactic forms (code-as-data).
# - KValue: Use in VM/runtime code to denote runtime values.

import logging
from typing import Any

KValue = Any
Form = KValue

logging.getLogger(__name__).addHandler(logging.NullHandler())
