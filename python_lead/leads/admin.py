"""
Django admin configuration for leads app.

Endpoints, workspaces and rules are managed here. Logs, history, jobs and
lifecycle events are read-only.
"""
from django.contrib import admin
from leads.models import (
    Appointment,
    AppointmentRoutingRule,
    Contact,
    ContactEvent,
    DeletionEvent,
    Endpoint,
    ForwardingLogEntry,
    ForwardingRule,
    Lead,
    LeadActivity,
    LeadStatusHistory,
    ScheduledDeletionJob,
    Workspace,
)


class ReadOnlyAdmin(admin.ModelAdmin):
    """Audit records are written by the service only."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class ForwardingRuleInline(admin.TabularInline):
    """Inline display of forwarding rules for an endpoint."""
    model = ForwardingRule
    extra = 0
    fields = ('priority', 'product_types', 'zip_codes', 'target_endpoint_id', 'target_url',
              'is_active', 'forward_enabled')


@admin.register(Endpoint)
class EndpointAdmin(admin.ModelAdmin):
    """
    Endpoint configuration.

    Deletion goes through the soft-delete API so the grace period and the
    audit trail are kept.
    """

    list_display = ('endpoint_id', 'name', 'lead_type', 'is_active', 'forwarding_enabled',
                    'forward_mode', 'total_leads', 'last_lead_at', 'deleted_at')
    list_filter = ('is_active', 'forwarding_enabled', 'forward_mode', 'lead_type')
    search_fields = ('endpoint_id', 'name')
    readonly_fields = ('total_leads', 'last_lead_at', 'forward_success_count', 'forward_failure_count',
                       'last_forwarded_at', 'deleted_at', 'scheduled_permanent_deletion_at',
                       'deletion_reason', 'deleted_by', 'deletion_job_id', 'created_at', 'updated_at')

    fieldsets = (
        ('Endpoint', {
            'fields': ('endpoint_id', 'name', 'description', 'lead_type', 'is_active')
        }),
        ('Forwarding', {
            'fields': ('forwarding_enabled', 'forward_mode', 'forward_success_count',
                       'forward_failure_count', 'last_forwarded_at')
        }),
        ('Statistics', {
            'fields': ('total_leads', 'last_lead_at', 'created_at', 'updated_at')
        }),
        ('Deletion', {
            'fields': ('deleted_at', 'scheduled_permanent_deletion_at', 'deletion_reason',
                       'deleted_by', 'deletion_job_id'),
            'classes': ('collapse',)
        }),
    )

    inlines = [ForwardingRuleInline]

    def has_delete_permission(self, request, obj=None):
        return False


class AppointmentRoutingRuleInline(admin.TabularInline):
    model = AppointmentRoutingRule
    extra = 0
    fields = ('priority', 'product_types', 'zip_codes', 'is_active', 'notes')


@admin.register(Workspace)
class WorkspaceAdmin(admin.ModelAdmin):
    list_display = ('workspace_id', 'name', 'is_active', 'webhook_active',
                    'forward_success_count', 'forward_failure_count')
    list_filter = ('is_active', 'webhook_active')
    search_fields = ('workspace_id', 'name')
    readonly_fields = ('forward_success_count', 'forward_failure_count', 'last_forwarded_at')
    inlines = [AppointmentRoutingRuleInline]


@admin.register(ForwardingRule)
class ForwardingRuleAdmin(admin.ModelAdmin):
    list_display = ('id', 'source_endpoint', 'priority', 'target_endpoint_id', 'is_active',
                    'forward_enabled', 'forward_success_count', 'forward_failure_count')
    list_filter = ('is_active', 'forward_enabled')
    search_fields = ('source_endpoint__endpoint_id', 'target_endpoint_id')
    readonly_fields = ('forward_success_count', 'forward_failure_count', 'last_forwarded_at')


@admin.register(AppointmentRoutingRule)
class AppointmentRoutingRuleAdmin(admin.ModelAdmin):
    list_display = ('id', 'workspace', 'priority', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('workspace__workspace_id',)


class ContactEventInline(admin.TabularInline):
    """Inline display of sightings for a contact."""
    model = ContactEvent
    extra = 0
    readonly_fields = ('event_type', 'event_data', 'created_at')
    fields = readonly_fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Contact)
class ContactAdmin(admin.ModelAdmin):
    list_display = ('id', 'endpoint_id', 'phone', 'full_name', 'email',
                    'total_conversions', 'lifetime_value')
    search_fields = ('id', 'phone', 'email', 'last_name')
    readonly_fields = ('id', 'endpoint_id', 'phone', 'created_at', 'updated_at')
    inlines = [ContactEventInline]


class LeadStatusHistoryInline(admin.TabularInline):
    """Inline display of status transitions for a lead."""
    model = LeadStatusHistory
    extra = 0
    readonly_fields = ('old_status', 'new_status', 'changed_by', 'reason', 'created_at')
    fields = readonly_fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Lead)
class LeadAdmin(admin.ModelAdmin):
    """Leads change status through the status API so every transition is journaled."""

    list_display = ('id', 'endpoint_id', 'status', 'product_type', 'zip_code', 'created_at')
    list_filter = ('status', 'lead_type', 'created_at')
    search_fields = ('id', 'phone', 'email', 'endpoint_id')
    readonly_fields = ('id', 'contact', 'endpoint_id', 'status', 'raw_payload', 'status_changed_at',
                       'status_changed_by', 'processed_at', 'created_at', 'updated_at')
    inlines = [LeadStatusHistoryInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Appointment)
class AppointmentAdmin(ReadOnlyAdmin):
    list_display = ('id', 'lead', 'matched_workspace', 'routing_method', 'scheduled_at',
                    'forward_status', 'forward_attempts')
    list_filter = ('routing_method', 'forward_status')


@admin.register(LeadActivity)
class LeadActivityAdmin(ReadOnlyAdmin):
    list_display = ('id', 'lead', 'activity_type', 'title', 'created_at')
    list_filter = ('activity_type',)


@admin.register(ForwardingLogEntry)
class ForwardingLogEntryAdmin(ReadOnlyAdmin):
    list_display = ('id', 'kind', 'lead_id', 'rule_id', 'target_url', 'forward_status',
                    'http_status_code', 'forwarded_at')
    list_filter = ('kind', 'forward_status', 'forwarded_at')
    search_fields = ('lead_id', 'source_endpoint_id', 'target_endpoint_id')


@admin.register(ScheduledDeletionJob)
class ScheduledDeletionJobAdmin(ReadOnlyAdmin):
    list_display = ('job_id', 'endpoint_id', 'status', 'execute_at', 'attempts', 'max_attempts',
                    'completed_at')
    list_filter = ('status',)
    search_fields = ('job_id', 'endpoint_id')


@admin.register(DeletionEvent)
class DeletionEventAdmin(ReadOnlyAdmin):
    list_display = ('id', 'endpoint_id', 'event_type', 'actor', 'job_id', 'created_at')
    list_filter = ('event_type',)
    search_fields = ('endpoint_id', 'job_id')
