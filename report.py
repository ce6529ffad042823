"""
PDF assessment report.
"""
from datetime import datetime

from fpdf import FPDF, XPos, YPos


def _latin1(value):
    # Core PDF fonts only cover Latin-1
    return str(value).encode('latin-1', 'replace').decode('latin-1')


class ReportPDF(FPDF):
    def header(self):
        self.set_font('Helvetica', 'B', 12)
        self.cell(0, 10, 'Rooftop Rainwater Harvesting Report', new_x=XPos.LMARGIN, new_y=YPos.NEXT, align='C')
        self.ln(5)

    def footer(self):
        self.set_y(-15)
        self.set_font('Helvetica', '', 8)
        self.cell(0, 10, f'Page {self.page_no()}', align='C')

    def section_title(self, title):
        self.set_font('Helvetica', 'B', 14)
        self.set_text_color(0, 77, 76)
        self.cell(0, 10, _latin1(title), new_x=XPos.LMARGIN, new_y=YPos.NEXT, align='L')
        self.line(self.get_x(), self.get_y(), self.get_x() + 190, self.get_y())
        self.ln(4)

    def write_key_value_table(self, data):
        self.set_font('Helvetica', '', 11)
        self.set_text_color(51, 51, 51)
        key_col_width = 65
        val_col_width = self.w - self.l_margin - self.r_margin - key_col_width
        line_height = self.font_size * 1.5
        for key, value in data.items():
            self.set_font('Helvetica', 'B')
            self.cell(key_col_width, line_height, _latin1(key), border=0)
            self.set_font('Helvetica', '')
            self.multi_cell(val_col_width, line_height, _latin1(value), border=0,
                            new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.ln(5)

    def write_list(self, items):
        self.set_font('Helvetica', '', 11)
        self.set_text_color(51, 51, 51)
        for item in items:
            self.multi_cell(0, 5, _latin1(f'- {item}'), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            self.ln(2)
        self.ln(5)


def build_report(assessment, generated_at=None):
    """Render a stored assessment dict as PDF bytes."""
    generated_at = generated_at or datetime.now()
    location = assessment.get('location') or {}
    harvest = assessment.get('harvest') or {}
    system = assessment.get('system') or {}
    costs = assessment.get('costs') or {}
    environmental = assessment.get('environmental') or {}
    recharge = assessment.get('recharge') or {}

    pdf = ReportPDF()
    pdf.add_page()
    pdf.set_font('Helvetica', 'B', 24)
    pdf.set_text_color(0, 77, 76)
    pdf.cell(0, 10, 'Harvesting Assessment', new_x=XPos.LMARGIN, new_y=YPos.NEXT, align='C')
    pdf.set_font('Helvetica', '', 11)
    pdf.set_text_color(51, 51, 51)
    pdf.cell(0, 10, f'Report generated on: {generated_at.strftime("%d %B %Y")}',
             new_x=XPos.LMARGIN, new_y=YPos.NEXT, align='C')
    pdf.ln(10)

    pdf.section_title('1. Your Property Details')
    pdf.write_key_value_table({
        "Property Owner": assessment.get('user_name') or 'Anonymous User',
        "Address": location.get('address') or 'Not provided',
        "Coordinates": f"{location.get('latitude', 0):.4f}, {location.get('longitude', 0):.4f}",
        "Rooftop Area": f"{assessment.get('roof_area', 0):.1f} m2",
        "Roof Type": str(assessment.get('roof_type', 'other')).title(),
        "Daily Water Demand": f"{assessment.get('water_demand', 0):,.0f} Liters",
    })

    pdf.section_title('2. Location Analysis')
    pdf.write_key_value_table({
        "Climate Zone": assessment.get('climate_zone') or 'general',
        "Annual Rainfall": f"{assessment.get('average_rainfall', 0):.0f} mm",
        "Soil Type": str(assessment.get('soil_type') or 'alluvial').title(),
        "Neighborhood": assessment.get('neighborhood_id') or 'default',
    })

    pdf.section_title('3. Harvest Potential')
    pdf.write_key_value_table({
        "Annual Harvest": f"{harvest.get('annual', 0):,} Liters",
        "Daily Average": f"{harvest.get('daily', 0):,} Liters",
        "Peak Month": f"{harvest.get('peak', 0):,} Liters",
        "Runoff Coefficient": harvest.get('runoff_coefficient', 0),
    })

    pdf.section_title('4. Recommended System')
    pdf.write_key_value_table({
        "System Size": str(system.get('size', 'small')).title(),
        "Tank Capacity": f"{system.get('tank_capacity', 0):,} Liters",
        "Description": system.get('description', ''),
        "Demand Coverage": f"{system.get('demand_coverage', 0)}%",
        "Recommended": 'Yes' if system.get('recommended') else 'No',
    })

    pdf.section_title('5. Financial Analysis')
    payback = costs.get('payback_years')
    pdf.write_key_value_table({
        "Equipment": f"Rs. {costs.get('equipment', 0):,}",
        "Installation": f"Rs. {costs.get('installation', 0):,}",
        "Subsidy": f"Rs. {costs.get('subsidy', 0):,}",
        "Net Cost": f"Rs. {costs.get('net_cost', 0):,}",
        "Annual Savings": f"Rs. {costs.get('annual_savings', 0):,}",
        "Payback Period": f"{payback} years" if payback is not None else 'Not applicable',
        "ROI": f"{costs.get('roi', 0)}%",
    })

    pdf.section_title('6. Environmental Impact')
    pdf.write_key_value_table({
        "Water Saved": f"{environmental.get('water_saved', 0):,} Liters",
        "CO2 Reduction": f"{environmental.get('co2_reduction', 0):,} kg",
        "Energy Saved": f"{environmental.get('energy_saved', 0):,} kWh",
        "Groundwater Recharge": f"{environmental.get('groundwater_recharge', 0):,} Liters",
        "Equivalent Trees": environmental.get('equivalent_trees', 0),
    })

    pdf.section_title('7. Groundwater Recharge')
    pdf.write_key_value_table({
        "Soil Suitability": recharge.get('soil_suitability', ''),
        "Recommendation": recharge.get('recommendation', ''),
        "Total Cost": f"Rs. {recharge.get('total_cost', 0):,}",
    })
    pdf.write_list(
        f"{s['quantity']} x {s['type'].replace('_', ' ')} ({s['dimensions']}): {s['description']}"
        for s in recharge.get('structures', [])
    )

    pdf.section_title('8. Sustainability')
    pdf.write_key_value_table({"Score": f"{assessment.get('sustainability_score', 0)}/100"})
    earned = [a['title'] for a in assessment.get('achievements') or [] if a.get('earned')]
    pdf.write_list(earned or ['No badges earned yet'])

    # The .output() method returns a bytearray, which we convert to bytes
    return bytes(pdf.output())
