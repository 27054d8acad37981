from marshmallow import Schema, fields


class ItemSchema(Schema):
    id = fields.Int(dump_only=True)
    type = fields.Str(required=True)
    category = fields.Str()
    title = fields.Str(required=True)
    description = fields.Str(allow_none=True)
    location = fields.Str(allow_none=True)
    latitude = fields.Float(allow_none=True)
    longitude = fields.Float(allow_none=True)
    occurred_on = fields.Date(data_key="occurredOn", allow_none=True)
    status = fields.Str(dump_only=True)
    match_score = fields.Float(data_key="matchScore", dump_only=True)
    reporter_user_id = fields.Int(data_key="reporterUserId", allow_none=True)
    created_at = fields.DateTime(data_key="createdAt", dump_only=True)


class ItemSummarySchema(Schema):
    id = fields.Int(dump_only=True)
    title = fields.Str()
    type = fields.Str()
    category = fields.Str()


class MatchLinkSchema(Schema):
    matched_item_id = fields.Int(data_key="matchedItemId")
    score = fields.Float()
    matched_at = fields.DateTime(data_key="matchedAt")
    matched_item = fields.Nested(ItemSchema, data_key="matchedItem", allow_none=True)


class MatchSuggestionSchema(Schema):
    original_item = fields.Nested(ItemSummarySchema, data_key="originalItem")
    matched_item = fields.Nested(ItemSchema, data_key="matchedItem")
    score = fields.Float(data_key="matchScore")
    matched_at = fields.DateTime(data_key="matchedAt")


class ManualMatchRequestSchema(Schema):
    item_id_1 = fields.Int(required=True, data_key="itemId1")
    item_id_2 = fields.Int(required=True, data_key="itemId2")
