"""Generate messy sample order files for manual end-to-end runs of the ingestion pipeline."""
import csv
import random
import sys
from datetime import date, timedelta


def generate_csv(num_rows: int, output_file: str, error_rate: float = 0.05) -> None:
    """
    Generate an orders CSV with non-standard headers and some bad values.

    Args:
        num_rows: Number of order rows to generate
        output_file: Output CSV file path
        error_rate: Share of rows given a negative total or an unparseable date
    """
    customers = [
        "Blue Plate Diner",
        "Harbor Bistro",
        "Green Fork Cafe",
        "Sunrise Bakery",
        "The Noodle Bar",
        "Corner Deli",
    ]

    items = [
        "Olive Oil 5L",
        "Flour 25kg",
        "Tomato Sauce Case",
        "Mozzarella 2kg",
        "Coffee Beans 1kg",
        "Paper Cups (1000)",
    ]

    statuses = ["Pending", "Confirmed", "Shipped", "Delivered"]
    date_formats = ["%Y-%m-%d", "%m/%d/%Y", "%d.%m.%Y"]
    start = date(2024, 1, 1)

    with open(output_file, "w", newline="") as f:
        writer = csv.writer(f)
        # Headers deliberately differ from the standard field names
        writer.writerow(["Order #", "Date", "Client", "Product", "Qty", "Price Each", "Order Total", "Status"])

        for i in range(num_rows):
            qty = random.randint(1, 40)
            price = round(random.uniform(2.5, 120.0), 2)
            total = f"${qty * price:,.2f}"
            ordered = (start + timedelta(days=random.randint(0, 365))).strftime(random.choice(date_formats))

            if random.random() < error_rate:
                if random.random() < 0.5:
                    total = f"-{qty * price:.2f}"
                else:
                    ordered = "sometime last week"

            writer.writerow([
                f"ORD-{i+1:07d}",
                ordered,
                random.choice(customers),
                random.choice(items),
                qty,
                price,
                total,
                random.choice(statuses),
            ])

            # Print progress every 10,000 rows
            if (i + 1) % 10000 == 0:
                print(f"Generated {i+1:,} rows...")

    print(f"✅ Successfully generated {num_rows:,} orders in {output_file}")


def main():
    """Main function to parse arguments and generate CSV."""
    if len(sys.argv) < 2:
        print("Usage: python generate_csv.py <num_rows> [output_file]")
        print("Example: python generate_csv.py 5000 orders_sample.csv")
        sys.exit(1)

    num_rows = int(sys.argv[1])
    output_file = sys.argv[2] if len(sys.argv) > 2 else f"orders_{num_rows}.csv"

    print(f"Generating orders CSV with {num_rows:,} rows...")
    generate_csv(num_rows, output_file)


if __name__ == "__main__":
    main()
