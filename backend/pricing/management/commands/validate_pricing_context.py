from django.core.management.base import BaseCommand, CommandError

from pricing.serializers import PricingContextSerializer, build_pricing_context
from pricing.services.validation import validate_pricing_context

from ._payload import read_payload


class Command(BaseCommand):
    help = "Validates the pricing context (curves, ladders, term schedules) in a JSON file."

    def add_arguments(self, parser):
        parser.add_argument("path", help="JSON file holding a context object, or {\"context\": ...}")

    def handle(self, *args, **options):
        payload = read_payload(options["path"])
        ser = PricingContextSerializer(data=payload.get("context", payload))
        if not ser.is_valid():
            raise CommandError(f"Invalid context: {ser.errors}")

        ctx = build_pricing_context(ser.validated_data)
        self.stdout.write(f"Validating {len(ctx.entries)} catalog entries...")

        problems = validate_pricing_context(ctx)
        for problem in problems:
            self.stdout.write(self.style.WARNING(f"  - {problem}"))

        self.stdout.write("-" * 20)
        if problems:
            self.stdout.write(self.style.ERROR(f"\nValidation complete. Found {len(problems)} problem(s)."))
        else:
            self.stdout.write(self.style.SUCCESS("\nValidation complete. Pricing context looks good."))
