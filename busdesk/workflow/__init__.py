from busdesk.workflow.dialog import SaleDialog, DialogRegistry, sale_dialogs
from busdesk.workflow.sale import SaleState, reduce, build_sale_request

__all__ = ["SaleDialog", "DialogRegistry", "sale_dialogs", "SaleState", "reduce", "build_sale_request"]
