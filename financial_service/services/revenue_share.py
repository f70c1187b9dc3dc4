# financial_service/services/revenue_share.py
from __future__ import annotations

GST_RATE = 0.18
DIRECT_SHARE = 0.80
REFERRED_SHARE = 0.20


def calculate_net_amount(gross: float) -> float:
    """Fee paid is GST-inclusive; strip the 18%."""
    return (gross or 0) / (1 + GST_RATE)


def calculate_center_share(gross: float, is_direct: bool = True) -> float:
    """
    Center payout on a GST-inclusive fee.
    Direct student (enrolled through the center): 80% of net.
    Referred student (sent by the center):        20% of net.
    """
    rate = DIRECT_SHARE if is_direct else REFERRED_SHARE
    return calculate_net_amount(gross) * rate


def fee_term(payment_type: str | None, current_emi: int | None) -> str:
    if payment_type == "emi" and current_emi:
        return f"EMI - {current_emi}"
    return "Full"
