"""
기본 데이터 시드 스크립트
기본 플링코 게임과 예시 상점 아이템을 생성
"""

import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ledgerapi.database.connection import SessionLocal
from ledgerapi.models.shop import ItemCategory, ItemType, LootboxRarity
from ledgerapi.schemas.shop import (
    LootboxContentsRequest,
    LootboxRewardEntry,
    ShopItemCreateRequest,
)
from ledgerapi.services.game_service import GameService
from ledgerapi.services.shop_service import ShopService


def seed_default_game(db):
    game = GameService(db).initialize_default_plinko_game()
    print(f"✅ 기본 플링코 게임: id={game.id}, bets {game.min_bet}..{game.max_bet}")


def seed_shop_items(db):
    """예시 아이템 + 토큰 보상 루트박스"""
    shop = ShopService(db)
    if shop.list_items(limit=1).total_count > 0:
        print("ℹ️  상점 아이템이 이미 존재하여 건너뜀")
        return

    small = shop.create_item(
        ShopItemCreateRequest(
            name="50 Point Token", price=0, stock=0, active=False,
            item_type=ItemType.TOKEN, category=ItemCategory.UTILITY,
        )
    )
    large = shop.create_item(
        ShopItemCreateRequest(
            name="500 Point Token", price=0, stock=0, active=False,
            item_type=ItemType.TOKEN, category=ItemCategory.UTILITY,
        )
    )
    badge = shop.create_item(
        ShopItemCreateRequest(
            name="Community Badge", price=250, stock=100,
            item_type=ItemType.DIGITAL, category=ItemCategory.COSMETIC, featured=True,
        )
    )
    lootbox = shop.create_item(
        ShopItemCreateRequest(
            name="Mystery Box", price=100, stock=500,
            item_type=ItemType.DIGITAL, category=ItemCategory.LOOTBOX,
        )
    )
    shop.set_lootbox_contents(
        lootbox.id,
        LootboxContentsRequest(
            possible_items=[
                LootboxRewardEntry(item_id=small.id, quantity=50, weight=70, rarity=LootboxRarity.COMMON),
                LootboxRewardEntry(item_id=badge.id, quantity=1, weight=25, rarity=LootboxRarity.RARE),
                LootboxRewardEntry(item_id=large.id, quantity=500, weight=5, rarity=LootboxRarity.LEGENDARY),
            ]
        ),
    )
    print("✅ 상점 시드 데이터 생성 완료: 4개 아이템 (루트박스 1개)")


def main():
    db = SessionLocal()
    try:
        seed_default_game(db)
        seed_shop_items(db)
    except Exception as e:
        print(f"❌ 시드 데이터 생성 실패: {str(e)}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
