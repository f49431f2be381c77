"""PDF layouts for order documents."""
from .receipt_template import render_receipt  # noqa: F401
from .pick_slip_template import render_pick_slip  # noqa: F401
