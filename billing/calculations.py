"""
Bill arithmetic for checkout and merged bills.

Everything here is a pure function of its arguments: no database access and
no settings lookups, so the same inputs always give the same breakdown.

All money is ``Decimal``. Inputs are parsed leniently: ``None``, blank,
unparsable or oversized values count as zero so that checkout keeps working with
partially filled data. Every component (GST, service charge, discount) is
rounded to paise before the grand total is summed, which keeps

    total = subtotal + gst + service charge - discount

exact on the stored two-decimal values.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

ZERO = Decimal('0')
HUNDRED = Decimal('100')
TWO_PLACES = Decimal('0.01')

DISCOUNT_NONE = 'none'
DISCOUNT_PERCENTAGE = 'percentage'
DISCOUNT_FIXED = 'fixed'


def to_decimal(value):
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        number = value
    else:
        try:
            number = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return ZERO
    if not number.is_finite():
        return ZERO
    return number


def money(value):
    try:
        return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # too many digits to hold in paise
        return ZERO


def percent_of(amount, rate):
    return money(to_decimal(amount) * to_decimal(rate) / HUNDRED)


@dataclass(frozen=True)
class TaxPolicy:
    """
    Rates applied to a bill.

    ``split_gst`` charges GST separately on room and food charges according to
    the checkout toggles. When it is off, GST is charged on the whole subtotal
    (merged bills). Service charge is always a share of the full subtotal.
    """
    gst_rate: Decimal
    service_charge_rate: Decimal
    split_gst: bool = True


CHECKOUT_TAX_POLICY = TaxPolicy(gst_rate=Decimal('5'), service_charge_rate=Decimal('10'), split_gst=True)
MERGE_TAX_POLICY = TaxPolicy(gst_rate=Decimal('18'), service_charge_rate=Decimal('10'), split_gst=False)


@dataclass(frozen=True)
class ManualCharge:
    name: str
    amount: Decimal

    def as_dict(self):
        return {'name': self.name, 'amount': str(self.amount)}


def clean_manual_charges(rows):
    """Keep rows with a name and a positive amount; drop the rest silently."""
    valid = []
    for row in rows or []:
        if isinstance(row, ManualCharge):
            name, amount = row.name, row.amount
        elif isinstance(row, dict):
            name, amount = row.get('name'), row.get('amount')
        else:
            continue
        name = str(name).strip() if name is not None else ''
        amount = money(amount)
        if name and amount > ZERO:
            valid.append(ManualCharge(name=name, amount=amount))
    return valid


@dataclass(frozen=True)
class ChargeTotals:
    room_charges: Decimal
    food_charges: Decimal
    extra_charges: Decimal
    manual_charges: tuple
    manual_charges_total: Decimal
    subtotal: Decimal


def aggregate_charges(charges, manual_charges=None):
    """
    ``charges`` is the booking's ``{room_charges, food_charges, extra_charges}``
    mapping; values may be Decimals, numbers or strings.
    """
    room = money(charges.get('room_charges'))
    food = money(charges.get('food_charges'))
    extra = money(charges.get('extra_charges'))
    manual = tuple(clean_manual_charges(manual_charges))
    manual_total = sum((charge.amount for charge in manual), ZERO)
    return ChargeTotals(
        room_charges=room,
        food_charges=food,
        extra_charges=extra,
        manual_charges=manual,
        manual_charges_total=manual_total,
        subtotal=room + food + extra + manual_total,
    )


def compute_tax(totals, policy, gst_on_rooms=False, gst_on_food=False, include_service_charge=False):
    """Returns ``(gst_amount, service_charge_amount)``."""
    if policy.split_gst:
        gst = ZERO
        if gst_on_rooms:
            gst += percent_of(totals.room_charges, policy.gst_rate)
        if gst_on_food:
            gst += percent_of(totals.food_charges, policy.gst_rate)
    elif gst_on_rooms or gst_on_food:
        gst = percent_of(totals.subtotal, policy.gst_rate)
    else:
        gst = ZERO

    service_charge = percent_of(totals.subtotal, policy.service_charge_rate) if include_service_charge else ZERO
    return gst, service_charge


def compute_discount(discount_type, discount_value, pre_discount_total, room_charges=ZERO,
                     food_charges=ZERO, applies_to='total'):
    if discount_type not in (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED):
        return ZERO
    value = to_decimal(discount_value)
    if value <= ZERO:
        return ZERO

    if discount_type == DISCOUNT_PERCENTAGE:
        base = {'room': room_charges, 'food': food_charges}.get(applies_to, pre_discount_total)
        discount = percent_of(base, value)
    else:
        discount = money(value)
    # never push the grand total below zero
    return min(discount, pre_discount_total)


def resolve_balance(total_amount, advance_paid):
    return max(ZERO, money(total_amount) - money(advance_paid))


@dataclass(frozen=True)
class SplitPayment:
    cash_amount: Decimal
    online_amount: Decimal
    change_due: Decimal


def split_payment(balance_due, cash_amount=None, online_amount=None):
    """
    Divide the balance into a cash part and an online part.

    Cash is recorded as entered (never negative). Any cash above the balance
    shows up as ``change_due`` and leaves nothing for online.
    """
    balance_due = money(balance_due)
    if cash_amount is None or cash_amount == '':
        online = max(ZERO, money(online_amount))
        cash = max(ZERO, balance_due - online)
    else:
        cash = max(ZERO, money(cash_amount))
    return SplitPayment(
        cash_amount=cash,
        online_amount=max(ZERO, balance_due - cash),
        change_due=max(ZERO, cash - balance_due),
    )


@dataclass(frozen=True)
class BillBreakdown:
    room_charges: Decimal
    food_charges: Decimal
    extra_charges: Decimal
    manual_charges: tuple
    manual_charges_total: Decimal
    subtotal: Decimal
    gst_rate: Decimal
    gst_amount: Decimal
    service_charge_rate: Decimal
    service_charge_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    advance_paid: Decimal
    balance_amount: Decimal

    def as_dict(self):
        data = {
            'room_charges': self.room_charges,
            'food_charges': self.food_charges,
            'extra_charges': self.extra_charges,
            'manual_charges_total': self.manual_charges_total,
            'subtotal': self.subtotal,
            'gst_rate': self.gst_rate,
            'gst_amount': self.gst_amount,
            'service_charge_rate': self.service_charge_rate,
            'service_charge_amount': self.service_charge_amount,
            'discount_amount': self.discount_amount,
            'total_amount': self.total_amount,
            'advance_paid': self.advance_paid,
            'balance_amount': self.balance_amount,
        }
        data = {key: str(money(value)) for key, value in data.items()}
        data['manual_charges'] = [charge.as_dict() for charge in self.manual_charges]
        return data


def compute_bill(charges, manual_charges=None, gst_on_rooms=False, gst_on_food=False,
                 include_service_charge=False, discount_type=DISCOUNT_NONE, discount_value=None,
                 discount_applies_to='total', advance_paid=ZERO, policy=CHECKOUT_TAX_POLICY):
    totals = aggregate_charges(charges, manual_charges)
    gst, service_charge = compute_tax(
        totals, policy,
        gst_on_rooms=gst_on_rooms,
        gst_on_food=gst_on_food,
        include_service_charge=include_service_charge,
    )
    pre_discount_total = totals.subtotal + gst + service_charge
    discount = compute_discount(
        discount_type, discount_value, pre_discount_total,
        room_charges=totals.room_charges,
        food_charges=totals.food_charges,
        applies_to=discount_applies_to,
    )
    total = pre_discount_total - discount
    advance = money(advance_paid)
    return BillBreakdown(
        room_charges=totals.room_charges,
        food_charges=totals.food_charges,
        extra_charges=totals.extra_charges,
        manual_charges=totals.manual_charges,
        manual_charges_total=totals.manual_charges_total,
        subtotal=totals.subtotal,
        gst_rate=policy.gst_rate,
        gst_amount=gst,
        service_charge_rate=policy.service_charge_rate,
        service_charge_amount=service_charge,
        discount_amount=discount,
        total_amount=total,
        advance_paid=advance,
        balance_amount=resolve_balance(total, advance),
    )


def compute_merged_bill(booking_totals, order_amounts, extra_amounts, policy=MERGE_TAX_POLICY):
    """
    Consolidated bill over several bookings: each booking's stored total is
    treated as room charges, and GST plus service charge are always applied
    on the full subtotal.
    """
    charges = {
        'room_charges': sum((money(amount) for amount in booking_totals), ZERO),
        'food_charges': sum((money(amount) for amount in order_amounts), ZERO),
        'extra_charges': sum((money(amount) for amount in extra_amounts), ZERO),
    }
    return compute_bill(
        charges,
        gst_on_rooms=True,
        gst_on_food=True,
        include_service_charge=True,
        policy=policy,
    )
