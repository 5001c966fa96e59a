"""
Fixed datasets served when the remote repository cannot be reached.
"""
from copy import deepcopy
from typing import Any, Dict

MOCK_DOCUMENT: Dict[str, Any] = {
    "projects": [
        {
            "id": "omnibridge",
            "name": "Omnibridge",
            "category": "Infrastructure",
            "status": "on-track",
            "progress": 85,
            "nextMilestone": "Mainnet Beta",
            "dueDate": "2024-08-15",
            "team": ["Alice Chen", "Bob Rodriguez"],
            "dependencies": ["NEAR Protocol Core"],
            "description": "Cross-chain bridge infrastructure",
            "githubRepo": "https://github.com/omnibridge/omnibridge",
            "fundingType": "infrastructure",
            "lastUpdated": "2024-07-02T10:00:00Z",
            "milestones": [
                {"id": "omnibridge-m1", "title": "Technical Architecture", "status": "completed", "dueDate": "2024-02-01", "progress": 100},
                {"id": "omnibridge-m2", "title": "Smart Contract Development", "status": "completed", "dueDate": "2024-04-15", "progress": 100},
                {"id": "omnibridge-m3", "title": "Security Audit", "status": "completed", "dueDate": "2024-06-01", "progress": 100, "isGrantMilestone": True},
                {"id": "omnibridge-m4", "title": "Testnet Launch", "status": "completed", "dueDate": "2024-07-01", "progress": 100},
                {"id": "omnibridge-m5", "title": "Mainnet Beta", "status": "in-progress", "dueDate": "2024-08-15", "progress": 75, "dependencies": ["omnibridge-m4"]},
                {"id": "omnibridge-m6", "title": "Full Mainnet Launch", "status": "pending", "dueDate": "2024-09-30", "progress": 0, "dependencies": ["omnibridge-m5"]},
            ],
        },
        {
            "id": "agent-hub-sdk",
            "name": "Agent Hub SDK",
            "category": "SDK",
            "status": "at-risk",
            "progress": 62,
            "nextMilestone": "API Documentation",
            "dueDate": "2024-07-28",
            "team": ["Carol Kim", "David Park"],
            "dependencies": ["NEAR Intents", "Lucid Wallet"],
            "description": "SDK for building AI agents on NEAR",
            "fundingType": "sdk",
            "lastUpdated": "2024-07-01T15:30:00Z",
            "milestones": [
                {"id": "agent-hub-sdk-m1", "title": "Core SDK Framework", "status": "completed", "dueDate": "2024-04-15", "progress": 100},
                {"id": "agent-hub-sdk-m2", "title": "Agent Templates", "status": "completed", "dueDate": "2024-05-30", "progress": 100},
                {"id": "agent-hub-sdk-m3", "title": "API Documentation", "status": "in-progress", "dueDate": "2024-07-28", "progress": 60},
                {"id": "agent-hub-sdk-m4", "title": "Example Applications", "status": "pending", "dueDate": "2024-08-30", "progress": 10, "dependencies": ["agent-hub-sdk-m3"]},
            ],
        },
        {
            "id": "meteor-wallet",
            "name": "Meteor Wallet",
            "category": "Grantee",
            "status": "delayed",
            "progress": 45,
            "nextMilestone": "Security Audit",
            "dueDate": "2024-07-20",
            "team": ["Eve Thompson", "Frank Liu"],
            "dependencies": [],
            "description": "Next-generation NEAR wallet",
            "fundingType": "grant",
            "lastUpdated": "2024-06-30T09:15:00Z",
        },
    ],
    "lastUpdate": "2024-07-02T10:00:00Z",
    "version": "1.0.0",
}

def mock_document() -> Dict[str, Any]:
    """A private copy of the fallback projects document."""
    return deepcopy(MOCK_DOCUMENT)
