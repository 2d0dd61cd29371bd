"""
DEX and Liquidity Pool Metrics for clamm

Prometheus metrics for swap operations, liquidity management, oracle
updates and pool health.
"""

from prometheus_client import REGISTRY, Counter, Gauge


class DEXMetrics:
    """Metrics for DEX operations and liquidity pools."""

    def __init__(self, registry=None):
        self.registry = registry or REGISTRY

        # Swap metrics
        self.swaps_total = Counter(
            'clamm_dex_swaps_total',
            'Total number of swaps attempted',
            ['pool', 'token_in', 'status'],
            registry=self.registry
        )

        self.swap_volume = Counter(
            'clamm_dex_swap_volume_total',
            'Total swap volume in base units',
            ['pool', 'denom'],
            registry=self.registry
        )

        self.swap_fees_collected = Counter(
            'clamm_dex_swap_fees_collected_total',
            'Total swap fees charged',
            ['pool', 'denom'],
            registry=self.registry
        )

        # Liquidity metrics
        self.liquidity_added = Counter(
            'clamm_dex_liquidity_added_total',
            'Total liquidity added to pools',
            ['pool', 'denom'],
            registry=self.registry
        )

        self.liquidity_removed = Counter(
            'clamm_dex_liquidity_removed_total',
            'Total liquidity removed from pools',
            ['pool', 'denom'],
            registry=self.registry
        )

        self.pool_reserves = Gauge(
            'clamm_dex_pool_reserves',
            'Current pool reserves',
            ['pool', 'denom'],
            registry=self.registry
        )

        # Pool health metrics
        self.pools_total = Gauge(
            'clamm_dex_pools_total',
            'Total number of liquidity pools',
            registry=self.registry
        )

        self.pool_creations = Counter(
            'clamm_dex_pool_creations_total',
            'Total pools created',
            registry=self.registry
        )

        self.pool_fee_rate = Gauge(
            'clamm_dex_pool_fee_rate',
            'Pool fee rate as a fraction of 1_000_000',
            ['pool'],
            registry=self.registry
        )

        self.concentrated_liquidity_positions = Gauge(
            'clamm_dex_concentrated_liquidity_positions',
            'Active concentrated liquidity positions',
            ['pool'],
            registry=self.registry
        )

        # Security metrics
        self.circuit_breaker_active = Gauge(
            'clamm_dex_circuit_breaker_active',
            'Emergency shutdown status (0=inactive, 1=active)',
            registry=self.registry
        )

        # TWAP metrics
        self.twap_updates = Counter(
            'clamm_dex_twap_updates_total',
            'Oracle update operations',
            registry=self.registry
        )

        self.twap_price = Gauge(
            'clamm_dex_twap_price',
            'Oracle EMA sqrt price',
            ['pool'],
            registry=self.registry
        )

    def track_pool(self, pool) -> None:
        """Refresh the gauges derived from a pool record."""
        pool_label = str(pool.id)
        self.pool_reserves.labels(pool=pool_label, denom=pool.token_x).set(pool.reserve_x)
        self.pool_reserves.labels(pool=pool_label, denom=pool.token_y).set(pool.reserve_y)
        self.pool_fee_rate.labels(pool=pool_label).set(pool.fee_rate)

    def track_swap(self, pool, token_in, amount_in, fee_amount, status='success'):
        """Track swap execution with automatic metric updates."""
        pool_label = str(pool.id)
        self.swaps_total.labels(pool=pool_label, token_in=token_in, status=status).inc()
        if status != 'success':
            return

        self.swap_volume.labels(pool=pool_label, denom=token_in).inc(amount_in)
        self.swap_fees_collected.labels(pool=pool_label, denom=token_in).inc(fee_amount)
        self.track_pool(pool)

    def track_liquidity_change(self, pool, amount_x, amount_y, operation='add'):
        """Track liquidity additions/removals."""
        pool_label = str(pool.id)
        if operation == 'add':
            counter = self.liquidity_added
        elif operation == 'remove':
            counter = self.liquidity_removed
        else:
            raise ValueError(f"Unknown liquidity operation {operation!r}")

        counter.labels(pool=pool_label, denom=pool.token_x).inc(amount_x)
        counter.labels(pool=pool_label, denom=pool.token_y).inc(amount_y)
        self.track_pool(pool)

    def track_oracle(self, pool_id, price_average):
        self.twap_updates.inc()
        self.twap_price.labels(pool=str(pool_id)).set(price_average)
