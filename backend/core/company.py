"""Company profile stored in the settings table"""
import copy

from .models import Setting

COMPANY_SETTING_KEY = 'company_info'

DEFAULT_COMPANY_INFO = {
    'name': 'Professional Pipe Supply Co.',
    'description': 'Leading supplier of industrial pipes and fittings',
    'address': {
        'street': '123 Industrial Blvd',
        'city': 'Manufacturing City',
        'state': 'TX',
        'zip_code': '12345',
        'country': 'USA',
    },
    'phone': '(555) 123-4567',
    'email': 'info@pipesupply.com',
    'website': 'https://pipesupply.com',
    'certifications': [
        {
            'name': 'ISO 9001:2015',
            'issuer': 'International Organization for Standardization',
            'valid_until': '2025-12-31',
        },
    ],
    'service_areas': ['Texas', 'Oklahoma', 'Louisiana'],
    'specialties': ['Industrial Pipes', 'Custom Fittings', 'Emergency Supply'],
}


def get_company_info():
    """Stored profile merged over the defaults"""
    info = copy.deepcopy(DEFAULT_COMPANY_INFO)
    setting = Setting.objects.filter(key=COMPANY_SETTING_KEY).first()
    if setting and isinstance(setting.value, dict):
        info.update(setting.value)
    return info


def save_company_info(data):
    setting, _ = Setting.objects.update_or_create(
        key=COMPANY_SETTING_KEY,
        defaults={'value': data, 'description': 'Public company profile'},
    )
    return setting
