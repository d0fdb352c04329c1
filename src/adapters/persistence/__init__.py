from .dynamodb_evidence_sink import DynamoDbEvidenceSink, ticket_to_row

__all__ = [
    "DynamoDbEvidenceSink",
    "ticket_to_row",
]
