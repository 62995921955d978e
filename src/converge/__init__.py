"""converge - declarative reconciliation of cloud components against their deployed state."""

from . import components as components
from .component import Component as Component
from .component import component as component
from .component import resolve_component as resolve_component
from .context import Context as Context
from .diff import Action as Action
from .diff import should_deploy as should_deploy
from .errors import ErrorReport as ErrorReport
from .ops import Absent as Absent
from .ops import Ensure as Ensure
from .resolve import or_ as or_
from .resolve import resolvable as resolvable
from .resolve import resolve as resolve
from .run import run as run
from .stacks import Stack as Stack
from .state import MemoryStateStore as MemoryStateStore
from .state import Snapshot as Snapshot
