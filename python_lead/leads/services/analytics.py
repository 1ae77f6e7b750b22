"""
Daily lead rollups per endpoint.
"""
import datetime
import logging
from decimal import Decimal

from django.db.models import Count, Q, Sum

from leads.models import Lead, LeadAnalytics

logger = logging.getLogger(__name__)


def refresh_lead_analytics(endpoint_id: str, day: datetime.date) -> LeadAnalytics:
    """
    Recompute the rollup row for (endpoint_id, day) from the leads table.

    Args:
        endpoint_id: Receiving endpoint
        day: Calendar day (UTC) the leads were created on

    Returns:
        The upserted LeadAnalytics row
    """
    stats = Lead.objects.filter(endpoint_id=endpoint_id, created_at__date=day).aggregate(
        total=Count('id'),
        converted=Count('id', filter=Q(status=Lead.Status.CONVERTED)),
        revenue=Sum('revenue_potential'),
    )
    total = stats['total'] or 0
    converted = stats['converted'] or 0
    conversion_rate = (converted / total) * 100 if total else 0.0

    row, created = LeadAnalytics.objects.update_or_create(
        endpoint_id=endpoint_id,
        date=day,
        defaults={
            'total_leads': total,
            'converted_leads': converted,
            'conversion_rate': conversion_rate,
            'total_revenue': stats['revenue'] or Decimal('0'),
        },
    )
    logger.debug(
        f"Analytics for {endpoint_id} on {day}: {total} leads, "
        f"{converted} converted ({'created' if created else 'updated'})"
    )
    return row
