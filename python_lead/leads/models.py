"""
Data models for the Lead Router service.
"""
from django.db import models
from django.db.models import Max, Q


class ForwardingCounters(models.Model):
    """Delivery counters shared by everything leads can be forwarded to."""

    forward_success_count = models.PositiveIntegerField(default=0)
    forward_failure_count = models.PositiveIntegerField(default=0)
    last_forwarded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        abstract = True


class EndpointQuerySet(models.QuerySet):

    def active(self):
        return self.filter(is_active=True, deleted_at__isnull=True)

    def soft_deleted(self):
        return self.filter(deleted_at__isnull=False)


class Endpoint(ForwardingCounters):
    """
    A configured ingestion endpoint (webhook) that third parties post leads to.

    Carries its own statistics and the soft-delete lifecycle fields. Leads and
    contacts reference it by ``endpoint_id`` only, so removing the row never
    removes historical leads.
    """

    class ForwardMode(models.TextChoices):
        FIRST_MATCH = 'first-match', 'First match'
        ALL_MATCHES = 'all-matches', 'All matches'

    endpoint_id = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=200)
    description = models.TextField(null=True, blank=True)
    lead_type = models.CharField(max_length=50, default='general')
    is_active = models.BooleanField(default=True, db_index=True)

    forwarding_enabled = models.BooleanField(default=False)
    forward_mode = models.CharField(
        max_length=20,
        choices=ForwardMode.choices,
        default=ForwardMode.FIRST_MATCH,
    )

    total_leads = models.PositiveIntegerField(default=0)
    last_lead_at = models.DateTimeField(null=True, blank=True)

    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)
    scheduled_permanent_deletion_at = models.DateTimeField(null=True, blank=True)
    deletion_reason = models.TextField(null=True, blank=True)
    deleted_by = models.CharField(max_length=100, null=True, blank=True)
    deletion_job_id = models.CharField(max_length=64, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = EndpointQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Endpoint {self.endpoint_id} - {self.lifecycle_state}"

    @property
    def is_soft_deleted(self):
        return self.deleted_at is not None

    @property
    def lifecycle_state(self):
        if self.deleted_at is not None:
            return 'soft_deleted'
        return 'active' if self.is_active else 'inactive'


class Workspace(ForwardingCounters):
    """Appointment destination with an outbound webhook."""

    workspace_id = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=200)
    outbound_webhook_url = models.URLField(max_length=500, null=True, blank=True)
    webhook_active = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"Workspace {self.workspace_id}"

    @property
    def can_receive(self):
        return bool(self.is_active and self.webhook_active and self.outbound_webhook_url)


class RuleCriteria(models.Model):
    """
    Product-type x zip-code matcher shared by both rule scopes.

    Either list may contain ``WILDCARD`` to accept any value. Rules without an
    explicit priority are appended to the end of their scope.
    """

    WILDCARD = '*'

    product_types = models.JSONField(default=list)
    zip_codes = models.JSONField(default=list)
    priority = models.PositiveIntegerField(blank=True)
    is_active = models.BooleanField(default=True)
    notes = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ['priority', 'id']

    def scope_queryset(self):
        raise NotImplementedError

    def save(self, *args, **kwargs):
        if self.priority is None:
            current = self.scope_queryset().aggregate(top=Max('priority'))['top']
            self.priority = (current or 0) + 1
        super().save(*args, **kwargs)


class AppointmentRoutingRule(RuleCriteria):
    """Routes appointments to a workspace."""

    workspace = models.ForeignKey(
        Workspace,
        on_delete=models.CASCADE,
        related_name='routing_rules',
    )

    class Meta(RuleCriteria.Meta):
        indexes = [
            models.Index(fields=['is_active', 'priority'], name='routing_rule_active_prio_idx'),
        ]

    def __str__(self):
        return f"Routing rule {self.id} -> {self.workspace_id} (p{self.priority})"

    def scope_queryset(self):
        return AppointmentRoutingRule.objects.filter(workspace_id=self.workspace_id)


class ForwardingRule(RuleCriteria, ForwardingCounters):
    """Forwards leads received on ``source_endpoint`` to ``target_url``."""

    source_endpoint = models.ForeignKey(
        Endpoint,
        on_delete=models.CASCADE,
        related_name='forwarding_rules',
    )
    target_endpoint_id = models.CharField(max_length=64)
    target_url = models.URLField(max_length=500)
    forward_enabled = models.BooleanField(default=True)

    class Meta(RuleCriteria.Meta):
        indexes = [
            models.Index(fields=['source_endpoint', 'is_active', 'priority'], name='fwd_rule_source_prio_idx'),
        ]

    def __str__(self):
        return f"Forwarding rule {self.id}: {self.source_endpoint_id} -> {self.target_endpoint_id}"

    def scope_queryset(self):
        return ForwardingRule.objects.filter(source_endpoint_id=self.source_endpoint_id)


class Contact(models.Model):
    """
    A unique person as seen by one receiving endpoint.

    Identity is (endpoint_id, phone) where phone is the normalized +1 form.
    """

    class Qualification(models.TextChoices):
        UNQUALIFIED = 'unqualified', 'Unqualified'
        QUALIFIED = 'qualified', 'Qualified'
        DISQUALIFIED = 'disqualified', 'Disqualified'

    id = models.BigIntegerField(primary_key=True)
    endpoint_id = models.CharField(max_length=64, blank=True, default='')
    phone = models.CharField(max_length=20)
    first_name = models.CharField(max_length=100, blank=True, default='')
    last_name = models.CharField(max_length=100, blank=True, default='')
    email = models.EmailField(null=True, blank=True)
    address = models.CharField(max_length=255, null=True, blank=True)
    city = models.CharField(max_length=100, null=True, blank=True)
    state = models.CharField(max_length=50, null=True, blank=True)
    zip_code = models.CharField(max_length=20, null=True, blank=True)

    lifetime_value = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_conversions = models.PositiveIntegerField(default=0)
    qualification_status = models.CharField(
        max_length=20,
        choices=Qualification.choices,
        default=Qualification.UNQUALIFIED,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['endpoint_id', 'phone'],
                name='unique_contact_per_endpoint_phone',
            ),
        ]
        indexes = [
            models.Index(fields=['phone'], name='contact_phone_idx'),
        ]

    def __str__(self):
        return f"Contact {self.id} - {self.phone}"

    @property
    def full_name(self):
        return ' '.join(part for part in (self.first_name, self.last_name) if part)


class ContactEvent(models.Model):
    """Audit row for one sighting of a contact."""

    class EventType(models.TextChoices):
        CREATED = 'created', 'Created'
        UPDATED = 'updated', 'Updated'

    contact = models.ForeignKey(
        Contact,
        on_delete=models.CASCADE,
        related_name='events',
    )
    event_type = models.CharField(max_length=20, choices=EventType.choices)
    event_data = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['contact', 'id']

    def __str__(self):
        return f"{self.event_type} for Contact {self.contact_id}"


class Lead(models.Model):
    """
    One submitted opportunity, owned by exactly one contact.

    ``raw_payload`` is the untouched audit copy of the submission.
    """

    class Status(models.TextChoices):
        NEW = 'new', 'New'
        CONTACTED = 'contacted', 'Contacted'
        QUALIFIED = 'qualified', 'Qualified'
        PROPOSAL_SENT = 'proposal_sent', 'Proposal Sent'
        NEGOTIATING = 'negotiating', 'Negotiating'
        SCHEDULED = 'scheduled', 'Scheduled'
        CONVERTED = 'converted', 'Converted'
        REJECTED = 'rejected', 'Rejected'
        LOST = 'lost', 'Lost'

    id = models.BigIntegerField(primary_key=True)
    contact = models.ForeignKey(
        Contact,
        on_delete=models.CASCADE,
        related_name='leads',
    )
    endpoint_id = models.CharField(max_length=64, blank=True, default='', db_index=True)
    lead_type = models.CharField(max_length=50, default='general')

    first_name = models.CharField(max_length=100, blank=True, default='')
    last_name = models.CharField(max_length=100, blank=True, default='')
    email = models.EmailField(null=True, blank=True)
    phone = models.CharField(max_length=20, null=True, blank=True)
    address = models.CharField(max_length=255, null=True, blank=True)
    address2 = models.CharField(max_length=255, null=True, blank=True)
    city = models.CharField(max_length=100, null=True, blank=True)
    state = models.CharField(max_length=50, null=True, blank=True)
    zip_code = models.CharField(max_length=20, null=True, blank=True)

    source = models.CharField(max_length=200, blank=True, default='')
    product_type = models.CharField(max_length=100, null=True, blank=True)
    subsource = models.CharField(max_length=200, null=True, blank=True)
    campaign_id = models.CharField(max_length=100, null=True, blank=True)
    utm_source = models.CharField(max_length=100, null=True, blank=True)
    utm_medium = models.CharField(max_length=100, null=True, blank=True)
    utm_campaign = models.CharField(max_length=100, null=True, blank=True)
    landing_page_url = models.URLField(max_length=500, null=True, blank=True)

    raw_payload = models.JSONField(default=dict)
    ip_address = models.CharField(max_length=64, null=True, blank=True)
    user_agent = models.CharField(max_length=500, null=True, blank=True)

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.NEW,
        db_index=True,
    )
    notes = models.TextField(null=True, blank=True)
    conversion_score = models.FloatField(null=True, blank=True)
    revenue_potential = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    priority = models.PositiveIntegerField(default=1)
    assigned_to = models.CharField(max_length=100, null=True, blank=True)
    follow_up_date = models.DateTimeField(null=True, blank=True)
    contact_attempts = models.PositiveIntegerField(default=0)
    status_changed_at = models.DateTimeField(null=True, blank=True)
    status_changed_by = models.CharField(max_length=100, null=True, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['endpoint_id', 'created_at'], name='lead_endpoint_created_idx'),
        ]

    def __str__(self):
        return f"Lead {self.id} - {self.status}"


class LeadStatusHistory(models.Model):
    """Append-only journal of lead status transitions."""

    lead = models.ForeignKey(
        Lead,
        on_delete=models.CASCADE,
        related_name='status_history',
    )
    old_status = models.CharField(max_length=20, null=True, blank=True)
    new_status = models.CharField(max_length=20)
    changed_by = models.CharField(max_length=100, null=True, blank=True)
    changed_by_name = models.CharField(max_length=200, null=True, blank=True)
    reason = models.TextField(null=True, blank=True)
    notes = models.TextField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['lead', 'id']
        verbose_name_plural = 'lead status history'

    def __str__(self):
        return f"Lead {self.lead_id}: {self.old_status} -> {self.new_status}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Status history records are append-only")
        super().save(*args, **kwargs)


class LeadActivity(models.Model):
    """Timeline entry for a lead."""

    lead = models.ForeignKey(
        Lead,
        on_delete=models.CASCADE,
        related_name='activities',
    )
    activity_type = models.CharField(max_length=50)
    title = models.CharField(max_length=255)
    description = models.TextField(null=True, blank=True)
    created_by = models.CharField(max_length=100, null=True, blank=True)
    created_by_name = models.CharField(max_length=200, null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['lead', 'id']
        verbose_name_plural = 'lead activities'

    def __str__(self):
        return f"{self.activity_type} for Lead {self.lead_id}"


class LeadAnalytics(models.Model):
    """Daily lead rollup per endpoint."""

    endpoint_id = models.CharField(max_length=64)
    date = models.DateField()
    total_leads = models.PositiveIntegerField(default=0)
    converted_leads = models.PositiveIntegerField(default=0)
    conversion_rate = models.FloatField(default=0)
    total_revenue = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-date']
        verbose_name_plural = 'lead analytics'
        constraints = [
            models.UniqueConstraint(
                fields=['endpoint_id', 'date'],
                name='unique_lead_analytics_per_day',
            ),
        ]

    def __str__(self):
        return f"{self.endpoint_id} {self.date}: {self.total_leads} leads"


class Appointment(models.Model):
    """An appointment booked by a third party, optionally routed to a workspace."""

    class RoutingMethod(models.TextChoices):
        PRIORITY = 'priority', 'Priority'
        AUTO = 'auto', 'Auto'
        UNROUTED = 'unrouted', 'Unrouted'

    lead = models.ForeignKey(
        Lead,
        on_delete=models.CASCADE,
        related_name='appointments',
    )
    contact = models.ForeignKey(
        Contact,
        on_delete=models.CASCADE,
        related_name='appointments',
    )
    appointment_type = models.CharField(max_length=50, default='consultation')
    scheduled_at = models.CharField(max_length=64)
    duration_minutes = models.PositiveIntegerField(default=60)
    status = models.CharField(max_length=20, default='scheduled')
    notes = models.TextField(null=True, blank=True)

    customer_name = models.CharField(max_length=200, blank=True, default='')
    customer_phone = models.CharField(max_length=30, blank=True, default='')
    customer_email = models.EmailField(null=True, blank=True)
    service_type = models.CharField(max_length=100)
    customer_zip = models.CharField(max_length=20)
    estimated_value = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    matched_workspace = models.ForeignKey(
        Workspace,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='appointments',
    )
    routing_method = models.CharField(
        max_length=20,
        choices=RoutingMethod.choices,
        default=RoutingMethod.UNROUTED,
    )
    raw_payload = models.JSONField(default=dict)

    forward_status = models.CharField(max_length=20, null=True, blank=True)
    forward_response = models.TextField(null=True, blank=True)
    forward_attempts = models.PositiveIntegerField(default=0)
    forwarded_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Appointment {self.id} - {self.routing_method}"


class ForwardingLogEntry(models.Model):
    """
    Immutable record of one outbound delivery attempt.
    """

    class Kind(models.TextChoices):
        LEAD = 'lead', 'Lead'
        APPOINTMENT = 'appointment', 'Appointment'

    class Outcome(models.TextChoices):
        SUCCESS = 'success', 'Success'
        FAILED = 'failed', 'Failed'

    kind = models.CharField(max_length=20, choices=Kind.choices, default=Kind.LEAD)
    lead_id = models.BigIntegerField(db_index=True)
    contact_id = models.BigIntegerField(null=True, blank=True)
    appointment_id = models.BigIntegerField(null=True, blank=True)
    rule_id = models.BigIntegerField(null=True, blank=True)
    source_endpoint_id = models.CharField(max_length=64, blank=True, default='', db_index=True)
    target_endpoint_id = models.CharField(max_length=64, blank=True, default='')
    target_url = models.CharField(max_length=500)

    forward_status = models.CharField(max_length=20, choices=Outcome.choices)
    http_status_code = models.PositiveIntegerField(null=True, blank=True)
    response_body = models.TextField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)
    matched_product = models.CharField(max_length=100, null=True, blank=True)
    matched_zip = models.CharField(max_length=20, null=True, blank=True)
    payload = models.TextField(null=True, blank=True)
    forwarded_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-forwarded_at', '-id']
        verbose_name_plural = 'forwarding log entries'

    def __str__(self):
        return f"Forward of Lead {self.lead_id} to {self.target_url} - {self.forward_status}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Forwarding log entries are immutable")
        super().save(*args, **kwargs)

    @property
    def success(self):
        return self.forward_status == self.Outcome.SUCCESS


class ScheduledDeletionJob(models.Model):
    """
    One scheduled permanent deletion, created by a soft delete.

    The endpoint is referenced by its public identifier because the endpoint
    row is gone once the job completes.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        PROCESSING = 'processing', 'Processing'
        COMPLETED = 'completed', 'Completed'
        FAILED = 'failed', 'Failed'
        CANCELLED = 'cancelled', 'Cancelled'

    # Jobs the executor may still claim and a restore may still cancel.
    OPEN_STATUSES = (Status.PENDING, Status.FAILED)
    TERMINAL_STATUSES = (Status.COMPLETED, Status.CANCELLED)

    job_id = models.CharField(max_length=64, unique=True)
    endpoint_id = models.CharField(max_length=64, db_index=True)
    endpoint_name = models.CharField(max_length=200, blank=True, default='')
    execute_at = models.DateTimeField(db_index=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    attempts = models.PositiveIntegerField(default=0)
    max_attempts = models.PositiveIntegerField(default=3)
    error_message = models.TextField(null=True, blank=True)
    triggered_by = models.CharField(max_length=50, null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['execute_at']
        constraints = [
            models.UniqueConstraint(
                fields=['endpoint_id'],
                condition=Q(status__in=['pending', 'processing', 'failed']),
                name='one_open_deletion_job_per_endpoint',
            ),
        ]

    def __str__(self):
        return f"Deletion job {self.job_id} for {self.endpoint_id} - {self.status}"


class DeletionEvent(models.Model):
    """Audit trail of endpoint lifecycle actions."""

    class EventType(models.TextChoices):
        SOFT_DELETE = 'soft_delete', 'Soft delete'
        FORCE_DELETE = 'force_delete', 'Force delete'
        RESTORE = 'restore', 'Restore'
        PERMANENT_DELETE = 'permanent_delete', 'Permanent delete'
        DELETION_FAILED = 'deletion_failed', 'Deletion failed'

    endpoint_id = models.CharField(max_length=64, db_index=True)
    event_type = models.CharField(max_length=30, choices=EventType.choices)
    actor = models.CharField(max_length=100, null=True, blank=True)
    reason = models.TextField(null=True, blank=True)
    job_id = models.CharField(max_length=64, null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.event_type} of {self.endpoint_id}"
