"""Table fetchers: one PipelineSpec per ASKdata table."""

from .construction import fetch_construction_cost_index
from .cpi import fetch_cpi_average_prices_yearly, fetch_cpi_monthly
from .energy import fetch_energy_monthly, fetch_fuel_table, write_fuel_combined_dataset
from .gdp import fetch_gdp_by_activity_quarterly
from .government import fetch_government_expenditure, fetch_government_revenue
from .imports import fetch_imports_by_partner
from .labour import fetch_labour_employment_activity_gender, fetch_wage_levels
from .tourism import fetch_tourism_country, fetch_tourism_region
from .trade import fetch_trade_chapters_monthly, fetch_trade_partners
from .transport import fetch_air_transport_monthly, fetch_motor_vehicles_by_type

__all__ = [
    "fetch_air_transport_monthly",
    "fetch_construction_cost_index",
    "fetch_cpi_average_prices_yearly",
    "fetch_cpi_monthly",
    "fetch_energy_monthly",
    "fetch_fuel_table",
    "fetch_gdp_by_activity_quarterly",
    "fetch_government_expenditure",
    "fetch_government_revenue",
    "fetch_imports_by_partner",
    "fetch_labour_employment_activity_gender",
    "fetch_motor_vehicles_by_type",
    "fetch_tourism_country",
    "fetch_tourism_region",
    "fetch_trade_chapters_monthly",
    "fetch_trade_partners",
    "fetch_wage_levels",
    "write_fuel_combined_dataset",
]
