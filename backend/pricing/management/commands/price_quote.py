import json

from django.core.management.base import BaseCommand, CommandError

from pricing.serializers import (
    QuoteCalculateRequestSerializer,
    QuoteCalculationSerializer,
    build_pricing_context,
    build_quote,
)
from pricing.services.exceptions import PricingError
from pricing.services.pricing_service import calculate_quote
from pricing.services.validation import ensure_valid_context

from ._payload import read_payload


class Command(BaseCommand):
    help = "Prices a quote from a JSON file holding {\"context\": ..., \"quote\": ...}."

    def add_arguments(self, parser):
        parser.add_argument("path", help="JSON file with the pricing context and quote")
        parser.add_argument("--json", action="store_true", help="Print the full result as JSON")
        parser.add_argument("--strict", action="store_true", help="Refuse contexts that fail validation")

    def handle(self, *args, **options):
        ser = QuoteCalculateRequestSerializer(data=read_payload(options["path"]))
        if not ser.is_valid():
            raise CommandError(f"Invalid payload: {json.dumps(ser.errors)}")

        ctx = build_pricing_context(ser.validated_data["context"])
        quote = build_quote(ser.validated_data["quote"])

        try:
            if options["strict"]:
                ensure_valid_context(ctx)
            calc = calculate_quote(ctx, quote)
        except PricingError as e:
            raise CommandError(str(e)) from e

        if options["json"]:
            self.stdout.write(json.dumps(QuoteCalculationSerializer(calc).data, indent=2))
            return

        results = iter(calc.items)
        for pkg in quote.packages:
            self.stdout.write(f"--- Package {pkg.id} ({pkg.term_months} months) ---")
            for item in pkg.items:
                r = next(results)
                self.stdout.write(
                    f"  {item.entry_id:<24} qty={item.quantity} unit={r.unit_price} "
                    f"monthly={r.monthly_total} annual={r.annual_total}"
                )
        for totals in calc.packages:
            self.stdout.write(f"Package {totals.package_id}: {totals.subtotal_monthly}/month, {totals.subtotal_annual}/year")
        self.stdout.write("-" * 20)
        self.stdout.write(self.style.SUCCESS(
            f"Quote {calc.quote_id}: {calc.total_monthly}/month, {calc.total_annual}/year"
        ))
