"""
Excel export of an event's attendee list
"""

import io
from typing import Any, Dict
import pandas as pd

class ExcelService:
    """Service for handling Excel operations"""
    
    COLUMNS = ['Name', 'Email', 'Relationship', 'Registered User', 'Joined At', 'Last Joined At']
    
    @staticmethod
    def export_attendees(event: Dict[str, Any]) -> bytes:
        """Export the attendees of an event to Excel"""
        data = []
        for attendee in event.get("attendees", []):
            data.append({
                'Name': attendee.get("name"),
                'Email': attendee.get("email"),
                'Relationship': attendee.get("relationship"),
                'Registered User': 'Yes' if attendee.get("user_id") else 'No',
                'Joined At': attendee.get("joined_at"),
                'Last Joined At': attendee.get("last_joined_at"),
            })
        
        df = pd.DataFrame(data, columns=ExcelService.COLUMNS)
        
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name='Attendees')
        
        return buffer.getvalue()
