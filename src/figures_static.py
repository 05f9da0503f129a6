import matplotlib.pyplot as plt
import seaborn as sns

from errors import EmptySelectionError
from views import cross_section, drop_incomplete, select_columns


def plot_cross_section(table, year, out_path=None):
    """
    GDP per capita (log scale) against life expectancy for one year, one
    marker per country, sized by population and coloured by region.
    """
    df = select_columns(
        table, ["entity_code", "region_name", "year", "population", "gdp_per_capita", "life_expectancy"]
    )
    df = drop_incomplete(cross_section(df, year))
    df = df[df["gdp_per_capita"] > 0]
    if df.empty:
        raise EmptySelectionError(f"[figure] no complete rows for year={year}")

    fig, ax = plt.subplots(figsize=(9, 6))
    sns.scatterplot(
        data=df,
        x="gdp_per_capita",
        y="life_expectancy",
        hue="region_name",
        size="population",
        sizes=(20, 800),
        alpha=0.7,
        edgecolor="k",
        linewidth=0.4,
        ax=ax,
    )
    ax.set_xscale("log")
    ax.set_xlabel("GDP per capita (current US$, log scale)")
    ax.set_ylabel("Life expectancy at birth (years)")
    ax.set_title(f"{year}", loc="left", fontweight="bold", fontsize=15)
    ax.grid(which="major", linestyle="--", alpha=0.2)

    # label the five most populous countries
    top = df.nlargest(5, "population")
    for _, r in top.iterrows():
        ax.annotate(r["entity_code"], (r["gdp_per_capita"], r["life_expectancy"]),
                    fontsize=8, xytext=(4, 4), textcoords="offset points")

    handles, labels = ax.get_legend_handles_labels()
    ax.legend(handles, labels, loc="lower right", frameon=True, edgecolor="k", fontsize=8)
    sns.despine()
    plt.tight_layout()

    if out_path is not None:
        fig.savefig(out_path, dpi=150)
    return fig
