from __future__ import annotations

import logging

from rest_framework import status, views
from rest_framework.response import Response

from .serializers import (
    ContextValidateRequestSerializer,
    PerpetualPricingSerializer,
    PerpetualRequestSerializer,
    PreviewRequestSerializer,
    PriceTierSerializer,
    PricingResultSerializer,
    PriceTiersRequestSerializer,
    QuoteCalculateRequestSerializer,
    QuoteCalculationSerializer,
    build_line_item,
    build_pricing_context,
    build_quote,
)
from .services.exceptions import PricingError
from .services.pricing_rules import perpetual_config_from_rules
from .services.pricing_service import calculate_quote, convert_to_perpetual, preview_items, price_tiers
from .services.validation import validate_pricing_context

logger = logging.getLogger(__name__)


def _pricing_error_response(e: PricingError) -> Response:
    # Surface the raw engine message; nothing partial is returned
    logger.error(f"Pricing calculation aborted: {e}")
    return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)


class QuoteCalculateView(views.APIView):
    """Price a full quote (packages + items) against a resolved pricing context."""

    def post(self, request):
        ser = QuoteCalculateRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        ctx = build_pricing_context(data["context"])
        quote = build_quote(data["quote"])

        try:
            calc = calculate_quote(ctx, quote)
        except PricingError as e:
            return _pricing_error_response(e)

        return Response(QuoteCalculationSerializer(calc).data, status=status.HTTP_200_OK)


class PreviewView(views.APIView):
    """Price standalone items, always independently (no aggregation)."""

    def post(self, request):
        ser = PreviewRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        ctx = build_pricing_context(data["context"])
        items = [build_line_item(item) for item in data["items"]]

        try:
            results = preview_items(ctx, items)
        except PricingError as e:
            return _pricing_error_response(e)

        return Response({"items": PricingResultSerializer(results, many=True).data}, status=status.HTTP_200_OK)


class PriceTiersView(views.APIView):
    def post(self, request):
        ser = PriceTiersRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        ctx = build_pricing_context(data["context"])
        try:
            tiers = price_tiers(ctx, data["entry_id"])
        except PricingError as e:
            return _pricing_error_response(e)

        return Response(
            {"entry_id": data["entry_id"], "tiers": PriceTierSerializer(tiers, many=True).data},
            status=status.HTTP_200_OK,
        )


class PerpetualView(views.APIView):
    def post(self, request):
        ser = PerpetualRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        try:
            config = perpetual_config_from_rules(data["config"]) if data["config"] else None
            pricing = convert_to_perpetual(data["monthly_price"], data["quantity"], data["category"], config)
        except PricingError as e:
            return _pricing_error_response(e)
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            return Response({"detail": f"Invalid perpetual config: {e}"}, status=status.HTTP_400_BAD_REQUEST)

        if pricing is None:
            return Response({"category": data["category"], "excluded": True}, status=status.HTTP_200_OK)

        body = {"category": data["category"], "excluded": False}
        body.update(PerpetualPricingSerializer(pricing).data)
        return Response(body, status=status.HTTP_200_OK)


class ContextValidateView(views.APIView):
    def post(self, request):
        ser = ContextValidateRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        problems = validate_pricing_context(build_pricing_context(ser.validated_data["context"]))
        return Response({"valid": not problems, "problems": problems}, status=status.HTTP_200_OK)
