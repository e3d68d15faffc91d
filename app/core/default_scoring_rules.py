from typing import Any, Dict, List


DEFAULT_SCORING_RULES: List[Dict[str, Any]] = [
    # Demographic
    {
        "name": "C-Level Title",
        "description": "Lead has C-level or VP title",
        "category": "demographic",
        "field_name": "title",
        "operator": "contains",
        "field_value": "CEO,CTO,CFO,COO,VP,Chief,Director",
        "points": 20,
        "priority": 1,
    },
    {
        "name": "Manager Title",
        "description": "Lead has manager level title",
        "category": "demographic",
        "field_name": "title",
        "operator": "contains",
        "field_value": "Manager,Head,Lead",
        "points": 10,
        "priority": 2,
    },
    {
        "name": "Enterprise Company Size",
        "description": "Company has 1000+ employees",
        "category": "demographic",
        "field_name": "company_size",
        "operator": "in",
        "field_values": ["1001-5000", "5001-10000", "10000+"],
        "points": 15,
        "priority": 3,
    },
    {
        "name": "SMB Company Size",
        "description": "Company has 50-1000 employees",
        "category": "demographic",
        "field_name": "company_size",
        "operator": "in",
        "field_values": ["51-200", "201-500", "501-1000"],
        "points": 10,
        "priority": 4,
    },
    # Behavioral
    {
        "name": "Form Fill",
        "description": "Lead submitted a form",
        "category": "behavioral",
        "field_name": "source",
        "operator": "equals",
        "field_value": "Web Form",
        "points": 15,
        "priority": 1,
    },
    {
        "name": "Demo Request",
        "description": "Lead requested a demo",
        "category": "behavioral",
        "field_name": "source",
        "operator": "contains",
        "field_value": "Demo",
        "points": 25,
        "priority": 2,
    },
    # Engagement
    {
        "name": "High Activity",
        "description": "Lead has 5+ activities",
        "category": "engagement",
        "field_name": "activity_count",
        "operator": "greater_than",
        "field_value": "5",
        "points": 20,
        "priority": 1,
    },
    {
        "name": "Medium Activity",
        "description": "Lead has 2-5 activities",
        "category": "engagement",
        "field_name": "activity_count",
        "operator": "greater_than",
        "field_value": "2",
        "points": 10,
        "priority": 2,
    },
    {
        "name": "Contacted Status",
        "description": "Lead has been contacted",
        "category": "engagement",
        "field_name": "status",
        "operator": "equals",
        "field_value": "contacted",
        "points": 10,
        "priority": 3,
    },
    # Fit
    {
        "name": "Has Email",
        "description": "Lead has email address",
        "category": "fit",
        "field_name": "email",
        "operator": "exists",
        "points": 5,
        "priority": 1,
    },
    {
        "name": "Has Phone",
        "description": "Lead has phone number",
        "category": "fit",
        "field_name": "phone",
        "operator": "exists",
        "points": 5,
        "priority": 2,
    },
    {
        "name": "Has Company",
        "description": "Lead has company name",
        "category": "fit",
        "field_name": "company",
        "operator": "exists",
        "points": 5,
        "priority": 3,
    },
]
