from __future__ import annotations

from dataclasses import dataclass, replace

from price_stream.core.types import Address, SubscribeParams


@dataclass(slots=True, frozen=True, eq=True, repr=False, match_args=False, kw_only=True)
class SubscriptionEntryDomain:
    """주소 단위 구독 상태 (내부용)

    - pending_id: 응답 대기 중인 accountSubscribe 요청 id (확정되면 None)
    - confirmed_id: 서버가 돌려준 구독 id (확정 전 None, 현재 연결에서만 유효)
    """

    address: Address
    params: SubscribeParams
    pending_id: int | None = None
    confirmed_id: int | None = None

    def reissued(self, request_id: int, params: SubscribeParams | None = None) -> SubscriptionEntryDomain:
        """새 요청 id로 재발행된 상태 (이전 확정 id는 폐기)"""
        return replace(
            self,
            params=self.params if params is None else params,
            pending_id=request_id,
            confirmed_id=None,
        )

    def confirmed(self, subscription_id: int) -> SubscriptionEntryDomain:
        return replace(self, pending_id=None, confirmed_id=subscription_id)
