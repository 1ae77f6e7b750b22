# Generated migration for the lead router models

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Endpoint',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('forward_success_count', models.PositiveIntegerField(default=0)),
                ('forward_failure_count', models.PositiveIntegerField(default=0)),
                ('last_forwarded_at', models.DateTimeField(blank=True, null=True)),
                ('endpoint_id', models.CharField(max_length=64, unique=True)),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True, null=True)),
                ('lead_type', models.CharField(default='general', max_length=50)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('forwarding_enabled', models.BooleanField(default=False)),
                ('forward_mode', models.CharField(choices=[('first-match', 'First match'), ('all-matches', 'All matches')], default='first-match', max_length=20)),
                ('total_leads', models.PositiveIntegerField(default=0)),
                ('last_lead_at', models.DateTimeField(blank=True, null=True)),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('scheduled_permanent_deletion_at', models.DateTimeField(blank=True, null=True)),
                ('deletion_reason', models.TextField(blank=True, null=True)),
                ('deleted_by', models.CharField(blank=True, max_length=100, null=True)),
                ('deletion_job_id', models.CharField(blank=True, max_length=64, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Workspace',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('forward_success_count', models.PositiveIntegerField(default=0)),
                ('forward_failure_count', models.PositiveIntegerField(default=0)),
                ('last_forwarded_at', models.DateTimeField(blank=True, null=True)),
                ('workspace_id', models.CharField(max_length=64, unique=True)),
                ('name', models.CharField(max_length=200)),
                ('outbound_webhook_url', models.URLField(blank=True, max_length=500, null=True)),
                ('webhook_active', models.BooleanField(default=True)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Contact',
            fields=[
                ('id', models.BigIntegerField(primary_key=True, serialize=False)),
                ('endpoint_id', models.CharField(blank=True, default='', max_length=64)),
                ('phone', models.CharField(max_length=20)),
                ('first_name', models.CharField(blank=True, default='', max_length=100)),
                ('last_name', models.CharField(blank=True, default='', max_length=100)),
                ('email', models.EmailField(blank=True, max_length=254, null=True)),
                ('address', models.CharField(blank=True, max_length=255, null=True)),
                ('city', models.CharField(blank=True, max_length=100, null=True)),
                ('state', models.CharField(blank=True, max_length=50, null=True)),
                ('zip_code', models.CharField(blank=True, max_length=20, null=True)),
                ('lifetime_value', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('total_conversions', models.PositiveIntegerField(default=0)),
                ('qualification_status', models.CharField(choices=[('unqualified', 'Unqualified'), ('qualified', 'Qualified'), ('disqualified', 'Disqualified')], default='unqualified', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['phone'], name='contact_phone_idx')],
                'constraints': [models.UniqueConstraint(fields=('endpoint_id', 'phone'), name='unique_contact_per_endpoint_phone')],
            },
        ),
        migrations.CreateModel(
            name='ContactEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_type', models.CharField(choices=[('created', 'Created'), ('updated', 'Updated')], max_length=20)),
                ('event_data', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('contact', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='events', to='leads.contact')),
            ],
            options={
                'ordering': ['contact', 'id'],
            },
        ),
        migrations.CreateModel(
            name='Lead',
            fields=[
                ('id', models.BigIntegerField(primary_key=True, serialize=False)),
                ('endpoint_id', models.CharField(blank=True, db_index=True, default='', max_length=64)),
                ('lead_type', models.CharField(default='general', max_length=50)),
                ('first_name', models.CharField(blank=True, default='', max_length=100)),
                ('last_name', models.CharField(blank=True, default='', max_length=100)),
                ('email', models.EmailField(blank=True, max_length=254, null=True)),
                ('phone', models.CharField(blank=True, max_length=20, null=True)),
                ('address', models.CharField(blank=True, max_length=255, null=True)),
                ('address2', models.CharField(blank=True, max_length=255, null=True)),
                ('city', models.CharField(blank=True, max_length=100, null=True)),
                ('state', models.CharField(blank=True, max_length=50, null=True)),
                ('zip_code', models.CharField(blank=True, max_length=20, null=True)),
                ('source', models.CharField(blank=True, default='', max_length=200)),
                ('product_type', models.CharField(blank=True, max_length=100, null=True)),
                ('subsource', models.CharField(blank=True, max_length=200, null=True)),
                ('campaign_id', models.CharField(blank=True, max_length=100, null=True)),
                ('utm_source', models.CharField(blank=True, max_length=100, null=True)),
                ('utm_medium', models.CharField(blank=True, max_length=100, null=True)),
                ('utm_campaign', models.CharField(blank=True, max_length=100, null=True)),
                ('landing_page_url', models.URLField(blank=True, max_length=500, null=True)),
                ('raw_payload', models.JSONField(default=dict)),
                ('ip_address', models.CharField(blank=True, max_length=64, null=True)),
                ('user_agent', models.CharField(blank=True, max_length=500, null=True)),
                ('status', models.CharField(choices=[('new', 'New'), ('contacted', 'Contacted'), ('qualified', 'Qualified'), ('proposal_sent', 'Proposal Sent'), ('negotiating', 'Negotiating'), ('scheduled', 'Scheduled'), ('converted', 'Converted'), ('rejected', 'Rejected'), ('lost', 'Lost')], db_index=True, default='new', max_length=20)),
                ('notes', models.TextField(blank=True, null=True)),
                ('conversion_score', models.FloatField(blank=True, null=True)),
                ('revenue_potential', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('priority', models.PositiveIntegerField(default=1)),
                ('assigned_to', models.CharField(blank=True, max_length=100, null=True)),
                ('follow_up_date', models.DateTimeField(blank=True, null=True)),
                ('contact_attempts', models.PositiveIntegerField(default=0)),
                ('status_changed_at', models.DateTimeField(blank=True, null=True)),
                ('status_changed_by', models.CharField(blank=True, max_length=100, null=True)),
                ('processed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('contact', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='leads', to='leads.contact')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['endpoint_id', 'created_at'], name='lead_endpoint_created_idx')],
            },
        ),
        migrations.CreateModel(
            name='LeadStatusHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('old_status', models.CharField(blank=True, max_length=20, null=True)),
                ('new_status', models.CharField(max_length=20)),
                ('changed_by', models.CharField(blank=True, max_length=100, null=True)),
                ('changed_by_name', models.CharField(blank=True, max_length=200, null=True)),
                ('reason', models.TextField(blank=True, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('lead', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='status_history', to='leads.lead')),
            ],
            options={
                'ordering': ['lead', 'id'],
                'verbose_name_plural': 'lead status history',
            },
        ),
        migrations.CreateModel(
            name='LeadActivity',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('activity_type', models.CharField(max_length=50)),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True, null=True)),
                ('created_by', models.CharField(blank=True, max_length=100, null=True)),
                ('created_by_name', models.CharField(blank=True, max_length=200, null=True)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('lead', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='activities', to='leads.lead')),
            ],
            options={
                'ordering': ['lead', 'id'],
                'verbose_name_plural': 'lead activities',
            },
        ),
        migrations.CreateModel(
            name='LeadAnalytics',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('endpoint_id', models.CharField(max_length=64)),
                ('date', models.DateField()),
                ('total_leads', models.PositiveIntegerField(default=0)),
                ('converted_leads', models.PositiveIntegerField(default=0)),
                ('conversion_rate', models.FloatField(default=0)),
                ('total_revenue', models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-date'],
                'verbose_name_plural': 'lead analytics',
                'constraints': [models.UniqueConstraint(fields=('endpoint_id', 'date'), name='unique_lead_analytics_per_day')],
            },
        ),
        migrations.CreateModel(
            name='AppointmentRoutingRule',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('product_types', models.JSONField(default=list)),
                ('zip_codes', models.JSONField(default=list)),
                ('priority', models.PositiveIntegerField(blank=True)),
                ('is_active', models.BooleanField(default=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('workspace', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='routing_rules', to='leads.workspace')),
            ],
            options={
                'ordering': ['priority', 'id'],
                'abstract': False,
                'indexes': [models.Index(fields=['is_active', 'priority'], name='routing_rule_active_prio_idx')],
            },
        ),
        migrations.CreateModel(
            name='ForwardingRule',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('forward_success_count', models.PositiveIntegerField(default=0)),
                ('forward_failure_count', models.PositiveIntegerField(default=0)),
                ('last_forwarded_at', models.DateTimeField(blank=True, null=True)),
                ('product_types', models.JSONField(default=list)),
                ('zip_codes', models.JSONField(default=list)),
                ('priority', models.PositiveIntegerField(blank=True)),
                ('is_active', models.BooleanField(default=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('target_endpoint_id', models.CharField(max_length=64)),
                ('target_url', models.URLField(max_length=500)),
                ('forward_enabled', models.BooleanField(default=True)),
                ('source_endpoint', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='forwarding_rules', to='leads.endpoint')),
            ],
            options={
                'ordering': ['priority', 'id'],
                'abstract': False,
                'indexes': [models.Index(fields=['source_endpoint', 'is_active', 'priority'], name='fwd_rule_source_prio_idx')],
            },
        ),
        migrations.CreateModel(
            name='Appointment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('appointment_type', models.CharField(default='consultation', max_length=50)),
                ('scheduled_at', models.CharField(max_length=64)),
                ('duration_minutes', models.PositiveIntegerField(default=60)),
                ('status', models.CharField(default='scheduled', max_length=20)),
                ('notes', models.TextField(blank=True, null=True)),
                ('customer_name', models.CharField(blank=True, default='', max_length=200)),
                ('customer_phone', models.CharField(blank=True, default='', max_length=30)),
                ('customer_email', models.EmailField(blank=True, max_length=254, null=True)),
                ('service_type', models.CharField(max_length=100)),
                ('customer_zip', models.CharField(max_length=20)),
                ('estimated_value', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('routing_method', models.CharField(choices=[('priority', 'Priority'), ('auto', 'Auto'), ('unrouted', 'Unrouted')], default='unrouted', max_length=20)),
                ('raw_payload', models.JSONField(default=dict)),
                ('forward_status', models.CharField(blank=True, max_length=20, null=True)),
                ('forward_response', models.TextField(blank=True, null=True)),
                ('forward_attempts', models.PositiveIntegerField(default=0)),
                ('forwarded_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('contact', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='appointments', to='leads.contact')),
                ('lead', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='appointments', to='leads.lead')),
                ('matched_workspace', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='appointments', to='leads.workspace')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='ForwardingLogEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('kind', models.CharField(choices=[('lead', 'Lead'), ('appointment', 'Appointment')], default='lead', max_length=20)),
                ('lead_id', models.BigIntegerField(db_index=True)),
                ('contact_id', models.BigIntegerField(blank=True, null=True)),
                ('appointment_id', models.BigIntegerField(blank=True, null=True)),
                ('rule_id', models.BigIntegerField(blank=True, null=True)),
                ('source_endpoint_id', models.CharField(blank=True, db_index=True, default='', max_length=64)),
                ('target_endpoint_id', models.CharField(blank=True, default='', max_length=64)),
                ('target_url', models.CharField(max_length=500)),
                ('forward_status', models.CharField(choices=[('success', 'Success'), ('failed', 'Failed')], max_length=20)),
                ('http_status_code', models.PositiveIntegerField(blank=True, null=True)),
                ('response_body', models.TextField(blank=True, null=True)),
                ('error_message', models.TextField(blank=True, null=True)),
                ('matched_product', models.CharField(blank=True, max_length=100, null=True)),
                ('matched_zip', models.CharField(blank=True, max_length=20, null=True)),
                ('payload', models.TextField(blank=True, null=True)),
                ('forwarded_at', models.DateTimeField(auto_now_add=True, db_index=True)),
            ],
            options={
                'ordering': ['-forwarded_at', '-id'],
                'verbose_name_plural': 'forwarding log entries',
            },
        ),
        migrations.CreateModel(
            name='ScheduledDeletionJob',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('job_id', models.CharField(max_length=64, unique=True)),
                ('endpoint_id', models.CharField(db_index=True, max_length=64)),
                ('endpoint_name', models.CharField(blank=True, default='', max_length=200)),
                ('execute_at', models.DateTimeField(db_index=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('processing', 'Processing'), ('completed', 'Completed'), ('failed', 'Failed'), ('cancelled', 'Cancelled')], db_index=True, default='pending', max_length=20)),
                ('attempts', models.PositiveIntegerField(default=0)),
                ('max_attempts', models.PositiveIntegerField(default=3)),
                ('error_message', models.TextField(blank=True, null=True)),
                ('triggered_by', models.CharField(blank=True, max_length=50, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['execute_at'],
                'constraints': [models.UniqueConstraint(condition=models.Q(('status__in', ['pending', 'processing', 'failed'])), fields=('endpoint_id',), name='one_open_deletion_job_per_endpoint')],
            },
        ),
        migrations.CreateModel(
            name='DeletionEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('endpoint_id', models.CharField(db_index=True, max_length=64)),
                ('event_type', models.CharField(choices=[('soft_delete', 'Soft delete'), ('force_delete', 'Force delete'), ('restore', 'Restore'), ('permanent_delete', 'Permanent delete'), ('deletion_failed', 'Deletion failed')], max_length=30)),
                ('actor', models.CharField(blank=True, max_length=100, null=True)),
                ('reason', models.TextField(blank=True, null=True)),
                ('job_id', models.CharField(blank=True, max_length=64, null=True)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ['created_at', 'id'],
            },
        ),
    ]
