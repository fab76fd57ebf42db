from abc import ABC
from typing import TypeVar, Generic, Optional, List, Any, Type
from sqlalchemy.orm import Session
from pydantic import BaseModel

T = TypeVar("T")
SchemaType = TypeVar("SchemaType", bound=BaseModel)


class BaseRepository(Generic[T, SchemaType], ABC):
    """모든 리포지토리의 베이스 클래스 - Pydantic 응답 보장

    리포지토리는 flush 까지만 수행합니다. commit/rollback 은 서비스의
    atomic() 작업 단위가 담당합니다.
    """

    def __init__(
        self, model_class: Type[T], schema_class: Type[SchemaType], db: Session
    ):
        self.model_class = model_class
        self.schema_class = schema_class
        self.db = db

    def _to_schema(self, model_instance: Any) -> Optional[SchemaType]:
        """SQLAlchemy 모델을 Pydantic 스키마로 변환"""
        if model_instance is None:
            return None
        # Pydantic v2의 model_validate를 사용하여 from_attributes 활용
        return self.schema_class.model_validate(model_instance)

    def _to_schemas(self, model_instances: List[Any]) -> List[SchemaType]:
        return [self._to_schema(instance) for instance in model_instances]

    def get_model(self, id: Any, for_update: bool = False) -> Optional[T]:
        """ID로 모델 조회 (for_update=True 이면 SELECT ... FOR UPDATE)"""
        query = self.db.query(self.model_class).filter(
            getattr(self.model_class, "id") == id
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_by_id(self, id: Any) -> Optional[SchemaType]:
        """ID로 조회 - Pydantic 스키마 반환"""
        return self._to_schema(self.get_model(id))

    def get_by_field(self, field_name: str, value: Any) -> Optional[SchemaType]:
        """특정 필드로 조회 - Pydantic 스키마 반환"""
        model_instance = (
            self.db.query(self.model_class)
            .filter(getattr(self.model_class, field_name) == value)
            .first()
        )
        return self._to_schema(model_instance)

    def add(self, **kwargs) -> T:
        """새 레코드 추가 후 flush - 모델 반환 (ID 채번 완료)"""
        instance = self.model_class(**kwargs)
        self.db.add(instance)
        self.db.flush()
        return instance

    def create(self, **kwargs) -> Optional[SchemaType]:
        """새 레코드 생성 - Pydantic 스키마 반환"""
        instance = self.add(**kwargs)
        self.db.refresh(instance)
        return self._to_schema(instance)

    def update_model(self, instance: T, **kwargs) -> T:
        """이미 로드된(잠긴) 모델의 필드 갱신 후 flush"""
        for key, value in kwargs.items():
            if hasattr(instance, key):
                setattr(instance, key, value)
        self.db.flush()
        return instance

    def update(self, instance_id: Any, **kwargs) -> Optional[SchemaType]:
        """레코드 업데이트 - Pydantic 스키마 반환"""
        instance = self.get_model(instance_id, for_update=True)
        if not instance:
            return None
        self.update_model(instance, **kwargs)
        return self._to_schema(instance)

    def delete(self, instance_id: Any) -> bool:
        """레코드 삭제"""
        instance = self.get_model(instance_id)
        if not instance:
            return False
        self.db.delete(instance)
        self.db.flush()
        return True
