"""Seed definitions for expense categories and demo companies/projects.
Single source of truth for scripts/seed_ledger.py and the test fixtures.
"""

# Registered expense categories; anything else is reported under 'other'
EXPENSE_CATEGORIES = [
    'manpower',
    'materials',
    'software',
    'hardware',
    'services',
    'advertising',
    'travel',
    'office',
    'utilities',
    'other',
]

# Company name -> projects (name, status, budget)
DEMO_COMPANIES = {
    'Acme Corporation': [
        ('Website Redesign', 'in-progress', '250000.00'),
        ('Legacy System Migration', 'completed', '400000.00'),
    ],
    'TechVision Inc': [
        ('Mobile App Development', 'in-progress', '600000.00'),
    ],
    'Global Enterprises': [
        ('Digital Marketing Campaign', 'in-progress', None),
    ],
}
