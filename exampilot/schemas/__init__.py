"""
リクエスト/レスポンスのスキーマ定義（pydantic）
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """JSON上はcamelCase、Python側はsnake_caseで扱う基底モデル"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
    # TestAttempt などをpytestがテストクラスとして収集しないようにする
    __test__ = False

    def to_json(self):
        return self.model_dump(mode='json', by_alias=True)
