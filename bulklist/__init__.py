from .errors import BulkListError, ConfigurationError, RemoteError
from .models import WorkItem, ItemOutcome, BatchReport, DelayPolicy, RunState
from .parser import parse, TEMPLATE_TEXT
from .transport import Transport, RequestsTransport
from .client import ListClient
from .orchestrator import BatchOrchestrator, resolve_list_id

__all__ = [
    'parse',
    'TEMPLATE_TEXT',
    'BatchOrchestrator',
    'resolve_list_id',
    'ListClient',
    'Transport',
    'RequestsTransport',
    'WorkItem',
    'ItemOutcome',
    'BatchReport',
    'DelayPolicy',
    'RunState',
    'BulkListError',
    'ConfigurationError',
    'RemoteError',
]
