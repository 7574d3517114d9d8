"""
Dispatch strategy selection.

The same delegated batch can be submitted in two equivalent encodings.
Signer implementations differ in which one they accept for delegated
transactions, so the starting form comes from the signer's capabilities and
the retry controller may switch to the other form once.
"""

from ...schemas.transfers import BatchIntent
from ...utils import logger
from .adapter import EVMChainClient
from .schemas import DelegationAuthorization, DispatchStrategy, GasPlan
from .signatures import Signer


STRATEGY_LABELS = {
    DispatchStrategy.CONTRACT_CALL: "contract call",
    DispatchStrategy.RAW_DISPATCH: "raw transaction",
}


class DispatchStrategySelector:
    """
    Chooses and performs one dispatch.

    Both forms receive the identical ``nonce`` and ``GasPlan``; only the
    encoding differs.
    """

    def __init__(self, client: EVMChainClient, signer: Signer):
        self.client = client
        self.signer = signer

    def initial_strategy(self) -> DispatchStrategy:
        return self.signer.capabilities.preferred_strategy

    async def dispatch(
        self,
        strategy: DispatchStrategy,
        intent: BatchIntent,
        authorization: DelegationAuthorization,
        nonce: int,
        plan: GasPlan,
    ) -> str:
        """
        Send the transaction in the given form.

        Returns:
            Transaction hash.

        Raises:
            Exception: Whatever the signer or node raised, unclassified.
        """
        logger.debug(f"Dispatching batch of {intent.call_count} call(s) as {STRATEGY_LABELS[strategy]} (nonce {nonce})")
        if strategy is DispatchStrategy.CONTRACT_CALL:
            return await self.client.send_contract_call(self.signer, intent, authorization, nonce, plan)

        data = self.client.encode_batch_call(intent)
        return await self.client.send_raw_transaction(
            self.signer,
            data,
            intent.aggregate_value,
            authorization,
            nonce,
            plan,
        )
