"""
Utility functions for catalog operations

Product codes are 12 characters: a 3-letter brand, a 2-digit division,
a 2-digit category and a 5-character running number,
e.g. ``SPE110000001`` = Specs / Footwear / Lifestyle / 00001.
"""
import re

PRODUCT_CODE_PATTERN = re.compile(r'^([A-Z]{3})(\d{2})(\d{2})([A-Z0-9]{5})$')

BRANDS = {
    'PIE': 'Piero',
    'SPE': 'Specs',
}

DIVISIONS = {
    '11': 'Footwear',
    '12': 'Apparel',
    '13': 'Accessories',
    '14': 'Equipment',
    '21': 'Footwear',
    '22': 'Apparel',
    '23': 'Accessories',
    '24': 'Equipment',
}

CATEGORIES = {
    '00': 'Lifestyle',
    '01': 'Football',
    '02': 'Futsal',
    '03': 'Street Soccer',
    '04': 'Running',
    '05': 'Training',
    '06': 'Volley',
    '08': 'Badminton',
    '09': 'Tennis',
    '10': 'Basketball',
    '12': 'Skateboard',
    '14': 'Swimming',
    '17': 'Back to school',
}

SEASONS = {
    'SS': 'Spring/Summer',
    'FW': 'Fall/Winter',
    'HO': 'Holiday',
    'ES': 'Essential',
}


def normalize_product_code(value) -> str:
    return str(value or '').strip().upper()


def parse_product_code(product_code):
    """
    Split a product code into brand, division and category.

    Returns:
        dict with ``is_valid`` and ``error``; valid codes also carry
        ``brand_code``, ``product_division``, ``product_category`` and the
        matching ``brand_name``, ``division_name``, ``category_name``.
    """
    code = normalize_product_code(product_code)
    if not code:
        return {'is_valid': False, 'error': 'Product code is required'}

    match = PRODUCT_CODE_PATTERN.match(code)
    if not match:
        return {
            'is_valid': False,
            'error': 'Product code must be 3 letters, 4 digits and a 5-character number (e.g. SPE110000001)',
        }

    brand, division, category, _sequence = match.groups()
    if division not in DIVISIONS:
        return {'is_valid': False, 'error': f'Unknown product division {division}'}

    return {
        'is_valid': True,
        'error': None,
        'brand_code': brand,
        'product_division': division,
        'product_category': category,
        'brand_name': BRANDS.get(brand, brand),
        'division_name': DIVISIONS[division],
        'category_name': CATEGORIES.get(category, category),
    }
