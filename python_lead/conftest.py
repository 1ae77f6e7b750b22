import os
import sys
import pytest
import django

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))


def pytest_configure(config):
    """Configure Django settings for pytest."""
    from django.conf import settings

    # Only configure if not already configured
    if not settings.configured:
        settings.configure(
            DEBUG=True,
            DATABASES={
                'default': {
                    'ENGINE': 'django.db.backends.sqlite3',
                    'NAME': ':memory:',
                }
            },
            INSTALLED_APPS=[
                'django.contrib.admin',
                'django.contrib.auth',
                'django.contrib.contenttypes',
                'django.contrib.sessions',
                'django.contrib.messages',
                'rest_framework',
                'leads',
            ],
            MIDDLEWARE=[
                'django.middleware.common.CommonMiddleware',
                'django.contrib.sessions.middleware.SessionMiddleware',
                'django.contrib.auth.middleware.AuthenticationMiddleware',
                'django.contrib.messages.middleware.MessageMiddleware',
            ],
            TEMPLATES=[
                {
                    'BACKEND': 'django.template.backends.django.DjangoTemplates',
                    'APP_DIRS': True,
                    'OPTIONS': {
                        'context_processors': [
                            'django.contrib.auth.context_processors.auth',
                            'django.contrib.messages.context_processors.messages',
                            'django.template.context_processors.request',
                        ],
                    },
                },
            ],
            ROOT_URLCONF='lead_router.urls',
            SECRET_KEY='test-secret-key',
            USE_TZ=True,
            DEFAULT_AUTO_FIELD='django.db.models.BigAutoField',
            REST_FRAMEWORK={
                'DEFAULT_RENDERER_CLASSES': ['rest_framework.renderers.JSONRenderer'],
                'DEFAULT_PARSER_CLASSES': ['rest_framework.parsers.JSONParser'],
            },
            # Celery settings for tests
            CELERY_BROKER_URL='memory://',
            CELERY_RESULT_BACKEND='cache+memory://',
            CELERY_TASK_ALWAYS_EAGER=True,
            CELERY_TASK_EAGER_PROPAGATES=True,
            # Forwarding settings
            FORWARDING_TIMEOUT_SECONDS=5,
            FORWARDING_RESPONSE_BODY_LIMIT=1000,
            FORWARDING_PAYLOAD_LIMIT=10000,
            FORWARDING_METADATA_KEY='lead_router_metadata',
            # Endpoint deletion settings
            ENDPOINT_DELETION_GRACE_HOURS=24,
            ENDPOINT_DELETION_MAX_ATTEMPTS=3,
            ENDPOINT_DELETION_RETRY_DELAY_SECONDS=300,
            ENDPOINT_ID_PATTERN=r'^ws_[a-z]{2,3}_[a-z]+_\d{3}$',
        )

        django.setup()

        # Bind shared tasks to the project app so they run eagerly
        import lead_router  # noqa: F401
    else:
        # Override database settings for tests
        settings.DATABASES = {
            'default': {
                'ENGINE': 'django.db.backends.sqlite3',
                'NAME': ':memory:',
            }
        }


@pytest.fixture
def endpoint(db):
    """An active endpoint with forwarding switched off."""
    from leads.models import Endpoint
    return Endpoint.objects.create(
        endpoint_id='ws_cal_solar_001',
        name='California Solar',
        lead_type='solar',
    )


@pytest.fixture
def forwarding_endpoint(db):
    """An active endpoint forwarding first-match to three destinations."""
    from leads.models import Endpoint, ForwardingRule
    source = Endpoint.objects.create(
        endpoint_id='ws_tex_roof_002',
        name='Texas Roofing',
        lead_type='roofing',
        forwarding_enabled=True,
    )
    ForwardingRule.objects.create(
        source_endpoint=source,
        product_types=['Roofing'],
        zip_codes=['75001'],
        target_endpoint_id='ws_tex_roof_010',
        target_url='https://partner-one.example.com/hook',
        priority=1,
    )
    ForwardingRule.objects.create(
        source_endpoint=source,
        product_types=['*'],
        zip_codes=['75001', '75002'],
        target_endpoint_id='ws_tex_roof_011',
        target_url='https://partner-two.example.com/hook',
        priority=2,
    )
    ForwardingRule.objects.create(
        source_endpoint=source,
        product_types=['*'],
        zip_codes=['*'],
        target_endpoint_id='ws_tex_any_012',
        target_url='https://catch-all.example.com/hook',
        priority=3,
    )
    return source


@pytest.fixture
def workspace(db):
    """A workspace with an active outbound webhook and a roofing rule."""
    from leads.models import AppointmentRoutingRule, Workspace
    ws = Workspace.objects.create(
        workspace_id='ws_tex_sched_001',
        name='Texas Scheduling',
        outbound_webhook_url='https://scheduler.example.com/appointments',
    )
    AppointmentRoutingRule.objects.create(
        workspace=ws,
        product_types=['Roofing'],
        zip_codes=['75001'],
    )
    return ws


@pytest.fixture
def valid_lead_payload():
    """Return a valid lead payload for testing."""
    return {
        'first_name': 'Dana',
        'last_name': 'Whitfield',
        'phone': '(214) 555-0147',
        'email': 'Dana.Whitfield@Example.com',
        'address': '4100 Elm St',
        'city': 'Dallas',
        'state': 'TX',
        'zip_code': '75001',
        'productid': 'Roofing',
        'source': 'google-ads',
        'utm_campaign': 'spring-roofing',
        'notes': 'Prefers morning calls',
    }


@pytest.fixture
def appointment_payload():
    """Return an appointment payload carrying its own customer data."""
    return {
        'appointment_date': '2026-11-02T09:30:00Z',
        'customer_name': 'Morgan Reyes',
        'customer_phone': '214-555-0199',
        'customer_email': 'morgan.reyes@example.com',
        'service_type': 'Roofing',
        'customer_zip': '75001',
        'appointment_duration': '45',
    }
