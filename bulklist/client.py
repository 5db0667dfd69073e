import logging
from typing import Any, Dict, Optional

from .errors import RemoteError
from .models import AddedItem
from .transport import Transport

logger = logging.getLogger(__name__)

ADD_ITEM_OPERATION = "AddConstToList"
ADD_ITEM_MUTATION = """mutation AddConstToList($listId: ID!, $constId: ID!) {
  addItemToList(input: {listId: $listId, item: {itemElementId: $constId}}) {
    listId
    modifiedItem {
      itemId
      description {
        originalText { plainText }
      }
      listItem {
        ... on Title { id titleText { text } }
        ... on Name  { id nameText  { text } }
      }
    }
  }
}"""

EDIT_DESCRIPTION_OPERATION = "EditListItemDescription"
EDIT_DESCRIPTION_MUTATION = """mutation EditListItemDescription($listId: ID!, $itemId: ID!, $itemDescription: String!) {
  editListItemDescription(
    input: {listId: $listId, itemId: $itemId, itemDescription: $itemDescription}
  ) {
    formattedItemDescription {
      originalText { plainText }
    }
  }
}"""


class ListClient:
    """Issues the two list mutations. Holds no state beyond its transport."""

    def __init__(self, transport: Transport):
        self.transport = transport

    def add_item(self, list_id: str, item_id: str) -> AddedItem:
        """
        Add ``item_id`` to the list.

        Returns an AddedItem with:
          - remote_item_id: the list-entry id needed to edit its description
          - display_label: title or name text, if the service returned one
        """
        data = self._mutate(ADD_ITEM_MUTATION, ADD_ITEM_OPERATION,
                            {"listId": list_id, "constId": item_id})
        result = data.get("addItemToList")
        if not isinstance(result, dict):
            raise RemoteError("Response did not include addItemToList")

        modified = result.get("modifiedItem") or {}
        return AddedItem(
            remote_item_id=modified.get("itemId"),
            display_label=_label_of(modified.get("listItem")),
        )

    def set_annotation(self, list_id: str, remote_item_id: str, text: str) -> None:
        """Set the description of an entry already on the list."""
        data = self._mutate(EDIT_DESCRIPTION_MUTATION, EDIT_DESCRIPTION_OPERATION,
                            {"listId": list_id, "itemId": remote_item_id,
                             "itemDescription": text})
        if data.get("editListItemDescription") is None:
            raise RemoteError("Response did not include editListItemDescription")

    def _mutate(self, query: str, operation: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        payload = {"query": query, "operationName": operation, "variables": variables}
        logger.debug("Sending %s %s", operation, variables)
        body = self.transport.post_json(payload)

        errors = body.get("errors")
        if errors:
            raise RemoteError("; ".join(_error_message(e) for e in errors))

        data = body.get("data")
        if not isinstance(data, dict):
            raise RemoteError(f"{operation} returned no data")
        return data


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or "Unknown error")
    return str(error)


def _label_of(node: Optional[Dict[str, Any]]) -> Optional[str]:
    if not isinstance(node, dict):
        return None
    for key in ("titleText", "nameText"):
        text = (node.get(key) or {}).get("text")
        if text:
            return text
    return None
