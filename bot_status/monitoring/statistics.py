from datetime import datetime, timedelta
from decimal import Decimal

from ..logger import get_app_logger
from ..storage.database import Database
from ..storage.models import ProfitAggregate, PERCENT_QUANT, AMOUNT_QUANT, chart_skeleton, utcnow

logger = get_app_logger(__name__)

TIMEFRAME_WINDOWS = {
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}


class ProfitStatistics:
    """Расчёт агрегатов прибыли по журналу сделок"""

    def __init__(self, database: Database):
        self.database = database

    @staticmethod
    def window_start(timeframe: str, now: datetime | None = None) -> datetime | None:
        """Начало окна для timeframe; None для неизвестных меток (вся история)"""
        window = TIMEFRAME_WINDOWS.get(timeframe.lower())
        if window is None:
            return None
        return (now or utcnow()) - window

    def compute(self, timeframe: str, now: datetime | None = None) -> ProfitAggregate:
        """
        Агрегат по завершённым сделкам окна timeframe.

        chart_data не вычисляется: сохраняется ранее записанный график
        (или пустой каркас из четырёх точек).
        """
        since = self.window_start(timeframe, now)
        trades = self.database.list_trades_since(since)

        total_profit = Decimal("0")
        total_loss = Decimal("0")
        winners = 0
        for trade in trades:
            if trade.profit_loss > 0:
                total_profit += trade.profit_loss
                winners += 1
            elif trade.profit_loss < 0:
                total_loss += -trade.profit_loss

        total_trades = len(trades)
        win_rate = Decimal(winners * 100) / Decimal(total_trades) if total_trades else Decimal("0")

        previous = self.database.get_profit_aggregate(timeframe)
        chart_data = previous.chart_data if previous.chart_data else chart_skeleton()

        aggregate = ProfitAggregate(
            timeframe=timeframe,
            total_profit=total_profit.quantize(AMOUNT_QUANT),
            total_loss=total_loss.quantize(AMOUNT_QUANT),
            net_profit=(total_profit - total_loss).quantize(AMOUNT_QUANT),
            win_rate=win_rate.quantize(PERCENT_QUANT),
            total_trades=total_trades,
            chart_data=chart_data,
        )
        logger.debug(
            f"Profit for '{timeframe}': trades={total_trades} net={aggregate.net_profit} "
            f"win_rate={aggregate.win_rate}%"
        )
        return aggregate

    def refresh(self, timeframe: str) -> ProfitAggregate:
        """Пересчитать и сохранить агрегат"""
        return self.database.upsert_profit_aggregate(timeframe, self.compute(timeframe))
